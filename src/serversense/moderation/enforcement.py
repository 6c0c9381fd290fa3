"""
Best-effort execution of moderation plans.

The coordinator talks to the chat platform only through
:class:`ModerationTransport` and to storage only through
:class:`ModerationStore`, so it can be exercised without Discord.

Every step of :meth:`EnforcementCoordinator.apply` is attempted independently:
a failed deletion does not prevent the timeout, the notices or the audit
entry. Failures are logged with their target and recorded on the returned
:class:`ExecutionReport`; they are never raised.

Escalation: each recorded warning increments the member's counter. When the
new total is exactly ``WARNING_ESCALATION_THRESHOLD`` the member is timed out
for ``ESCALATION_TIMEOUT``. Totals past the threshold do not re-trigger.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Awaitable, Dict, Optional, Protocol

from serversense.datatypes.moderation_datatypes import (
    ActionType,
    AuditEntry,
    EffectivePlan,
    ExecutionReport,
    MessageContext,
    Notice,
    WarningOutcome,
)
from serversense.moderation import moderation_embed
from serversense.util.format_utils import format_timedelta
from serversense.util.logger import get_logger

logger = get_logger("enforcement")

TIMEOUT_DURATIONS: Dict[int, timedelta] = {
    4: timedelta(minutes=1),
    5: timedelta(minutes=5),
    6: timedelta(minutes=15),
    7: timedelta(hours=1),
    8: timedelta(hours=6),
    9: timedelta(days=1),
    10: timedelta(weeks=1),
}
MIN_TIMEOUT_SEVERITY = min(TIMEOUT_DURATIONS)
MAX_TIMEOUT_SEVERITY = max(TIMEOUT_DURATIONS)

WARNING_ESCALATION_THRESHOLD = 5
ESCALATION_TIMEOUT = timedelta(hours=1)
ESCALATION_REASON = f"Auto-timeout: Reached {WARNING_ESCALATION_THRESHOLD} warnings"

PUBLIC_NOTICE_TTL = 10.0

# Automod actions that count as a warning against the member
WARNING_ACTIONS = frozenset({ActionType.WARN, ActionType.DELETE})


def timeout_duration_for(severity: int) -> timedelta:
    """Timeout length for a severity; values outside 4..10 clamp to the nearest bound."""
    clamped = max(MIN_TIMEOUT_SEVERITY, min(MAX_TIMEOUT_SEVERITY, severity))
    return TIMEOUT_DURATIONS[clamped]


class ModerationTransport(Protocol):
    """Outbound operations on the chat platform. Implementations may raise."""

    async def delete_message(self, context: MessageContext) -> None:
        ...

    async def timeout_member(self, guild_id: int, user_id: int, duration: timedelta, reason: str) -> None:
        ...

    async def can_timeout(self, guild_id: int, user_id: int) -> bool:
        ...

    async def send_direct_notice(self, user_id: int, notice: Notice) -> None:
        ...

    async def send_channel_notice(self, channel_id: int, notice: Notice, delete_after: Optional[float] = None) -> None:
        ...


class ModerationStore(Protocol):
    async def increment_warning(self, guild_id: int, user_id: int) -> int:
        ...

    async def append_audit_entry(self, entry: AuditEntry) -> int:
        ...


class EnforcementCoordinator:
    """Executes :class:`EffectivePlan` objects and owns warning escalation."""

    def __init__(self, transport: ModerationTransport, store: ModerationStore) -> None:
        self.transport = transport
        self.store = store

    async def _attempt(self, report: Optional[ExecutionReport], step: str, target: str, call: Awaitable[object]) -> bool:
        try:
            await call
        except Exception as exc:
            logger.warning("[ENFORCEMENT] %s failed for %s: %s", step, target, exc)
            if report is not None:
                report.failures.append(f"{step}: {exc}")
            return False
        return True

    async def apply(self, plan: EffectivePlan, context: MessageContext) -> ExecutionReport:
        """
        Execute ``plan`` against the message described by ``context``.

        Kick and ban are not executed automatically; at those levels only the
        message is deleted.

        Returns:
            ExecutionReport: Which steps succeeded, plus any failures.
        """
        report = ExecutionReport(action=plan.action)
        target = f"user {context.sender_id} in guild {context.guild_id}"

        if plan.action >= ActionType.DELETE:
            report.deleted = await self._attempt(
                report, "delete message", f"message {context.message_id}", self.transport.delete_message(context)
            )

        if plan.action == ActionType.TIMEOUT:
            await self._apply_timeout(report, plan, context, target)

        action_description = report.describe()

        if plan.notify_dm:
            notice = moderation_embed.build_dm_notice(plan, context, action_description)
            try:
                await self.transport.send_direct_notice(context.sender_id, notice)
                report.dm_sent = True
            except Exception as exc:
                logger.debug("[ENFORCEMENT] Could not DM user %s: %s", context.sender_id, exc)

        if not report.deleted and not report.timed_out and plan.notify_public:
            report.public_notice_sent = await self._attempt(
                report,
                "public warning",
                f"channel {context.channel_id}",
                self.transport.send_channel_notice(
                    context.channel_id, moderation_embed.build_public_warning(context), delete_after=PUBLIC_NOTICE_TTL
                ),
            )

        entry = AuditEntry(
            guild_id=context.guild_id,
            user_id=context.sender_id,
            action=plan.action.value,
            reason=f"{', '.join(plan.violation_names())}: {plan.reason}",
            actor_id=None,
            duration=format_timedelta(report.timeout_duration) if report.timeout_duration else None,
        )
        report.audit_recorded = await self._attempt(
            report, "audit entry", target, self.store.append_audit_entry(entry)
        )

        if plan.log_channel_id is not None:
            report.log_notice_sent = await self._attempt(
                report,
                "log channel notice",
                f"channel {plan.log_channel_id}",
                self.transport.send_channel_notice(
                    plan.log_channel_id, moderation_embed.build_log_notice(plan, context, action_description)
                ),
            )

        if plan.action in WARNING_ACTIONS:
            try:
                outcome = await self.issue_warning(context.guild_id, context.sender_id, context.channel_id)
            except Exception as exc:
                logger.warning("[ENFORCEMENT] Recording warning failed for %s: %s", target, exc)
                report.failures.append(f"record warning: {exc}")
            else:
                report.warning_total = outcome.total
                report.escalated = outcome.escalated

        logger.info(
            "[ENFORCEMENT] %s: %s (severity %d, %s)",
            target,
            action_description,
            plan.severity,
            ", ".join(plan.violation_names()) or "no violations",
        )
        return report

    async def _apply_timeout(
        self, report: ExecutionReport, plan: EffectivePlan, context: MessageContext, target: str
    ) -> None:
        try:
            allowed = await self.transport.can_timeout(context.guild_id, context.sender_id)
        except Exception as exc:
            logger.warning("[ENFORCEMENT] Permission check failed for %s: %s", target, exc)
            allowed = False
        if not allowed:
            logger.info("[ENFORCEMENT] Cannot time out %s, skipping timeout", target)
            report.failures.append("timeout: member cannot be timed out")
            return

        duration = timeout_duration_for(plan.severity)
        if await self._attempt(
            report,
            "timeout",
            target,
            self.transport.timeout_member(context.guild_id, context.sender_id, duration, f"AutoMod: {plan.reason}"),
        ):
            report.timeout_duration = duration

    async def issue_warning(
        self, guild_id: int, user_id: int, notice_channel_id: Optional[int] = None
    ) -> WarningOutcome:
        """
        Record one warning and run the escalation check.

        Shared by automod and the manual ``/warn`` command.

        Args:
            guild_id: Guild the warning belongs to.
            user_id: Warned member.
            notice_channel_id: Channel for the threshold notice, if any.

        Returns:
            WarningOutcome: The new total and whether the escalation timeout was applied.

        Raises:
            Exception: Whatever the store raises when the counter cannot be
                incremented. Escalation failures are logged, not raised.
        """
        total = await self.store.increment_warning(guild_id, user_id)
        if total != WARNING_ESCALATION_THRESHOLD:
            return WarningOutcome(total=total, escalated=False)

        target = f"user {user_id} in guild {guild_id}"
        try:
            allowed = await self.transport.can_timeout(guild_id, user_id)
        except Exception as exc:
            logger.warning("[ENFORCEMENT] Permission check failed for %s: %s", target, exc)
            allowed = False
        if not allowed:
            logger.info("[ENFORCEMENT] %s reached %d warnings but cannot be timed out", target, total)
            return WarningOutcome(total=total, escalated=False)

        if not await self._attempt(
            None,
            "escalation timeout",
            target,
            self.transport.timeout_member(guild_id, user_id, ESCALATION_TIMEOUT, ESCALATION_REASON),
        ):
            return WarningOutcome(total=total, escalated=False)

        logger.info("[ENFORCEMENT] %s reached %d warnings, timed out for %s", target, total, ESCALATION_TIMEOUT)
        await self._attempt(
            None,
            "escalation audit entry",
            target,
            self.store.append_audit_entry(
                AuditEntry(
                    guild_id=guild_id,
                    user_id=user_id,
                    action=ActionType.TIMEOUT.value,
                    reason=ESCALATION_REASON,
                    actor_id=None,
                    duration=format_timedelta(ESCALATION_TIMEOUT),
                )
            ),
        )
        if notice_channel_id is not None:
            await self._attempt(
                None,
                "escalation notice",
                f"channel {notice_channel_id}",
                self.transport.send_channel_notice(
                    notice_channel_id, moderation_embed.build_escalation_notice(user_id, total, ESCALATION_TIMEOUT)
                ),
            )
        return WarningOutcome(total=total, escalated=True, escalation_duration=ESCALATION_TIMEOUT)
