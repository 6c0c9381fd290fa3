"""Apply a guild's automod policy to a judgment."""

from __future__ import annotations

from typing import Optional

from serversense.configuration.guild_policy import GuildPolicy
from serversense.datatypes.moderation_datatypes import EffectivePlan, Judgment


def resolve(judgment: Judgment, policy: GuildPolicy) -> Optional[EffectivePlan]:
    """
    Turn a judgment into an executable plan, or None when suppressed.

    Suppressed when automod is disabled, the judgment is safe, or its severity
    is below the guild threshold. Otherwise the judgment's action is clamped
    down to the guild's action ceiling; severity, violations and reason pass
    through unchanged.
    """
    if not policy.enabled or judgment.safe or judgment.severity < policy.severity_threshold:
        return None

    return EffectivePlan(
        action=min(judgment.action, policy.action_ceiling),
        proposed_action=judgment.action,
        severity=judgment.severity,
        violations=judgment.violations,
        reason=judgment.reason,
        source=judgment.source,
        notify_dm=policy.dm_on_action,
        notify_public=policy.public_warnings,
        log_channel_id=policy.log_channel_id,
    )
