"""
Value types shared by the moderation pipeline.

This module defines the vocabulary every pipeline stage speaks:

- `ViolationKind`: the seven policy categories the AI judge and the pattern
  rules report.
- `ActionType`: the ordered enforcement scale ``none < warn < delete <
  timeout < kick < ban``.
- `MessageContext`: immutable snapshot of one inbound message.
- `QuickFinding`: a single pattern-rule hit.
- `Judgment`: the canonical verdict threaded through the pipeline.
- `EffectivePlan` / `ExecutionReport`: policy-clamped plan and the outcome of
  executing it.
- `AuditEntry` and `Notice`: records and payloads handed to the storage and
  transport collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from serversense.util.format_utils import format_timedelta


class ViolationKind(Enum):
    """Policy categories a message can violate."""

    TOXICITY = "TOXICITY"
    SPAM = "SPAM"
    SLURS = "SLURS"
    NSFW = "NSFW"
    THREATS = "THREATS"
    ADVERTISING = "ADVERTISING"
    SCAM = "SCAM"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: object) -> Optional["ViolationKind"]:
        """Return the matching kind for a loosely formatted value, or None."""
        if isinstance(value, ViolationKind):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class ActionType(Enum):
    """Enforcement actions, declared weakest first.

    Members compare by their position in the declaration, so
    ``ActionType.WARN < ActionType.BAN`` holds.
    """

    NONE = "none"
    WARN = "warn"
    DELETE = "delete"
    TIMEOUT = "timeout"
    KICK = "kick"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _ACTION_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ActionType):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ActionType):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ActionType):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ActionType):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: object) -> Optional["ActionType"]:
        """Return the matching action for a loosely formatted value, or None."""
        if isinstance(value, ActionType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_ACTION_ORDER: Tuple[ActionType, ...] = tuple(ActionType)


class JudgmentSource(Enum):
    """Which analysis tier produced a judgment."""

    PATTERN = "pattern"
    QUICK = "quick"
    AI = "ai"
    COMBINED = "combined"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class MessageContext:
    """Immutable snapshot of one inbound guild message.

    Attributes:
        text: Message content as sent.
        message_id: Snowflake of the message.
        guild_id: Snowflake of the guild the message was posted in.
        channel_id: Snowflake of the channel.
        sender_id: Snowflake of the author.
        sender_name: Display name of the author, used as AI context.
        channel_name: Channel name, used as AI context.
        guild_name: Guild name, used as AI context.
        sender_role_ids: Role snowflakes the author holds.
        sender_is_moderator: True when the author can manage messages.
        sender_is_bot: True when the author is a bot or webhook.
    """

    text: str
    message_id: int
    guild_id: int
    channel_id: int
    sender_id: int
    sender_name: str = ""
    channel_name: str = ""
    guild_name: str = ""
    sender_role_ids: FrozenSet[int] = frozenset()
    sender_is_moderator: bool = False
    sender_is_bot: bool = False


@dataclass(frozen=True, slots=True)
class QuickFinding:
    """One pattern-rule hit with its severity hint (1..10)."""

    kind: ViolationKind
    severity_hint: int
    reason: str


@dataclass(frozen=True, slots=True)
class Judgment:
    """Canonical moderation verdict for one message.

    ``safe`` is True exactly when ``violations`` is empty and ``severity`` is 0.
    """

    safe: bool
    violations: FrozenSet[ViolationKind] = frozenset()
    severity: int = 0
    reason: str = ""
    action: ActionType = ActionType.NONE
    source: JudgmentSource = JudgmentSource.AI

    @classmethod
    def clean(cls, reason: str = "", source: JudgmentSource = JudgmentSource.AI) -> "Judgment":
        """Return a safe judgment with no violations."""
        return cls(safe=True, reason=reason, source=source)

    def with_source(self, source: JudgmentSource) -> "Judgment":
        return Judgment(
            safe=self.safe,
            violations=self.violations,
            severity=self.severity,
            reason=self.reason,
            action=self.action,
            source=source,
        )

    def violation_names(self) -> List[str]:
        """Violation names in a stable, sorted order for display and logging."""
        return sorted(kind.value for kind in self.violations)


@dataclass(frozen=True, slots=True)
class EffectivePlan:
    """A judgment after the guild policy has been applied.

    ``action`` may be weaker than ``proposed_action`` when the guild's action
    ceiling clamped it; severity and violations are always the judgment's.
    """

    action: ActionType
    proposed_action: ActionType
    severity: int
    violations: FrozenSet[ViolationKind]
    reason: str
    source: JudgmentSource
    notify_dm: bool
    notify_public: bool
    log_channel_id: Optional[int] = None

    @property
    def clamped(self) -> bool:
        return self.action < self.proposed_action

    def violation_names(self) -> List[str]:
        return sorted(kind.value for kind in self.violations)


@dataclass(slots=True)
class ExecutionReport:
    """What the enforcement coordinator managed to do for one plan."""

    action: ActionType
    deleted: bool = False
    timeout_duration: Optional[timedelta] = None
    dm_sent: bool = False
    public_notice_sent: bool = False
    log_notice_sent: bool = False
    audit_recorded: bool = False
    warning_total: Optional[int] = None
    escalated: bool = False
    failures: List[str] = field(default_factory=list)

    @property
    def timed_out(self) -> bool:
        return self.timeout_duration is not None

    def describe(self) -> str:
        """Human-readable summary such as ``Message deleted + User timed out for 1 hour``."""
        parts: List[str] = []
        if self.deleted:
            parts.append("Message deleted")
        if self.timeout_duration is not None:
            parts.append(f"User timed out for {format_timedelta(self.timeout_duration)}")
        return " + ".join(parts) or "Warning issued"


@dataclass(frozen=True, slots=True)
class WarningOutcome:
    """Result of recording a warning against a member."""

    total: int
    escalated: bool
    escalation_duration: Optional[timedelta] = None


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """Immutable record of an executed moderation action.

    ``actor_id`` is None when the system itself acted (automod, escalation).
    """

    guild_id: int
    user_id: int
    action: str
    reason: str
    actor_id: Optional[int] = None
    duration: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    entry_id: Optional[int] = None

    @property
    def by_system(self) -> bool:
        return self.actor_id is None


@dataclass(frozen=True, slots=True)
class Notice:
    """Transport-neutral message payload (rendered as an embed on Discord)."""

    title: str
    description: str = ""
    fields: Tuple[Tuple[str, str], ...] = ()
    color: int = 0xFFFF00
    footer: str = ""
