"""
Per-guild automod policy and the validation used by the admin commands.

A policy is created lazily with the defaults below the first time a guild is
looked up, and only changes through explicit administrative updates.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, FrozenSet, Mapping

from serversense.datatypes.moderation_datatypes import ActionType

MIN_SEVERITY_THRESHOLD = 1
MAX_SEVERITY_THRESHOLD = 10
DEFAULT_SEVERITY_THRESHOLD = 3
DEFAULT_ACTION_CEILING = ActionType.TIMEOUT


class PolicyValidationError(ValueError):
    """Raised when an administrative update carries an invalid value.

    The message is safe to show to the invoking moderator.
    """


@dataclass(frozen=True, slots=True)
class GuildPolicy:
    """Automod configuration for one guild."""

    guild_id: int
    enabled: bool = False
    severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD
    action_ceiling: ActionType = DEFAULT_ACTION_CEILING
    ignored_channel_ids: FrozenSet[int] = field(default_factory=frozenset)
    ignored_role_ids: FrozenSet[int] = field(default_factory=frozenset)
    moderator_immunity: bool = True
    dm_on_action: bool = True
    public_warnings: bool = True
    log_channel_id: int | None = None

    def with_updates(self, **updates: Any) -> "GuildPolicy":
        """Return a copy with ``updates`` validated and applied."""
        return replace(self, **validate_policy_updates(updates))

    def is_channel_ignored(self, channel_id: int) -> bool:
        return channel_id in self.ignored_channel_ids

    def has_ignored_role(self, role_ids: FrozenSet[int]) -> bool:
        return not self.ignored_role_ids.isdisjoint(role_ids)


UPDATABLE_FIELDS: FrozenSet[str] = frozenset(f.name for f in fields(GuildPolicy)) - {"guild_id"}


def parse_severity_threshold(value: Any) -> int:
    """Validate a severity threshold (integer 1..10)."""
    if isinstance(value, bool):
        raise PolicyValidationError("Severity threshold must be a whole number between 1 and 10.")
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise PolicyValidationError("Severity threshold must be a whole number between 1 and 10.") from None
    if isinstance(value, float) and value != level:
        raise PolicyValidationError("Severity threshold must be a whole number between 1 and 10.")
    if not MIN_SEVERITY_THRESHOLD <= level <= MAX_SEVERITY_THRESHOLD:
        raise PolicyValidationError(
            f"Severity threshold must be between {MIN_SEVERITY_THRESHOLD} and {MAX_SEVERITY_THRESHOLD}, got {level}."
        )
    return level


def parse_action_ceiling(value: Any) -> ActionType:
    """Validate an action ceiling (one of the six action kinds)."""
    action = ActionType.parse(value)
    if action is None:
        choices = ", ".join(a.value for a in ActionType)
        raise PolicyValidationError(f"Unknown action '{value}'. Valid options: {choices}.")
    return action


def _parse_id_set(name: str, value: Any) -> FrozenSet[int]:
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        raise PolicyValidationError(f"{name} must be a collection of IDs.")
    try:
        return frozenset(int(item) for item in value)
    except (TypeError, ValueError):
        raise PolicyValidationError(f"{name} must only contain numeric IDs.") from None


def _parse_channel_id(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise PolicyValidationError("Log channel must be a channel ID.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise PolicyValidationError(f"Log channel must be a numeric channel ID, got {value!r}.") from None


def validate_policy_updates(updates: Mapping[str, Any]) -> dict[str, Any]:
    """Check and coerce a partial policy update.

    Raises:
        PolicyValidationError: For unknown fields or out-of-range values. Nothing
            is applied when this is raised.
    """
    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise PolicyValidationError(f"Unknown policy setting(s): {', '.join(sorted(unknown))}.")

    clean: dict[str, Any] = {}
    for key, value in updates.items():
        if key == "severity_threshold":
            clean[key] = parse_severity_threshold(value)
        elif key == "action_ceiling":
            clean[key] = parse_action_ceiling(value)
        elif key in ("ignored_channel_ids", "ignored_role_ids"):
            clean[key] = _parse_id_set(key, value)
        elif key == "log_channel_id":
            clean[key] = _parse_channel_id(value)
        else:
            if not isinstance(value, (bool, int)):
                raise PolicyValidationError(f"{key} must be true or false.")
            clean[key] = bool(value)
    return clean


def toggle_id(ids: FrozenSet[int], item: int) -> tuple[FrozenSet[int], bool]:
    """Add ``item`` if absent, remove it if present.

    Returns:
        The new set and True when the item was added.
    """
    if item in ids:
        return ids - {item}, False
    return ids | {item}, True
