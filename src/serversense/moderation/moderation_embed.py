"""
Notice builders for moderation messages.

Builders return transport-neutral :class:`Notice` objects; the Discord
transport renders them as embeds.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from serversense.datatypes.moderation_datatypes import ActionType, EffectivePlan, JudgmentSource, MessageContext, Notice
from serversense.util.format_utils import format_timedelta, truncate

COLOR_PRIMARY = 0x00C7C7
COLOR_SUCCESS = 0x00FF00
COLOR_ERROR = 0xFF0000
COLOR_WARNING = 0xFFFF00
COLOR_INFO = 0x0A1F2E

LOGGED_CONTENT_LIMIT = 1000


def severity_color(severity: int) -> int:
    """Green for minor, yellow/orange for moderate, red for serious violations."""
    if severity >= 8:
        return 0xFF0000
    if severity >= 6:
        return 0xFF6600
    if severity >= 4:
        return 0xFFCC00
    return 0x00FF00


def detection_label(source: JudgmentSource) -> str:
    if source is JudgmentSource.AI:
        return "🤖 AI Analysis"
    if source is JudgmentSource.COMBINED:
        return "🤖 AI + ⚡ Pattern Match"
    return "⚡ Pattern Match"


def build_dm_notice(plan: EffectivePlan, context: MessageContext, action_description: str) -> Notice:
    """Direct message telling the sender why automod acted."""
    return Notice(
        title=f"⚠️ AutoMod Warning - {context.guild_name or 'this server'}",
        description="Your message was flagged by our automated moderation system.",
        fields=(
            ("Reason", plan.reason),
            ("Action Taken", action_description),
        ),
        color=COLOR_WARNING,
        footer="Repeated violations may result in more severe actions.",
    )


def build_public_warning(context: MessageContext) -> Notice:
    """Short channel reminder posted when automod only warns."""
    return Notice(
        title="",
        description=f"⚠️ <@{context.sender_id}>, please be mindful of the server rules.",
        color=COLOR_WARNING,
    )


def build_log_notice(plan: EffectivePlan, context: MessageContext, action_description: str) -> Notice:
    """Summary of an automod action for the guild's log channel."""
    violations = ", ".join(plan.violation_names()) or "None"
    sender = f"{context.sender_name} ({context.sender_id})" if context.sender_name else str(context.sender_id)
    action_value = action_description
    if plan.clamped:
        action_value = f"{action_description} (capped at {plan.action}, proposed {plan.proposed_action})"
    return Notice(
        title="🛡️ AutoMod Action",
        description=f"**Violations:** {violations}\n**Reason:** {plan.reason}",
        fields=(
            ("User", sender),
            ("Channel", f"<#{context.channel_id}>"),
            ("Severity", f"{plan.severity}/10"),
            ("Action", action_value),
            ("Detection", detection_label(plan.source)),
            ("Message Content", f"```{truncate(context.text, LOGGED_CONTENT_LIMIT) or ' '}```"),
        ),
        color=severity_color(plan.severity),
        footer=f"Message ID: {context.message_id}",
    )


def build_escalation_notice(user_id: int, total: int, duration: timedelta) -> Notice:
    """Channel notice for the automatic timeout at the warning threshold."""
    return Notice(
        title="⏰ Warning Threshold Reached",
        description=(
            f"<@{user_id}> reached the warning threshold ({total} warnings) and has been "
            f"automatically timed out for {format_timedelta(duration)}."
        ),
        color=COLOR_WARNING,
    )


def build_manual_warning_dm(guild_name: str, reason: str, moderator_name: str, total: int) -> Notice:
    return Notice(
        title=f"⚠️ You have received a warning in {guild_name}",
        fields=(
            ("Reason", reason),
            ("Moderator", moderator_name),
            ("Total Warnings", str(total)),
        ),
        color=COLOR_WARNING,
    )


def build_timeout_dm(guild_name: str, reason: str, duration: timedelta, moderator_name: Optional[str] = None) -> Notice:
    fields = [("Reason", reason), ("Duration", format_timedelta(duration))]
    if moderator_name:
        fields.append(("Moderator", moderator_name))
    return Notice(
        title=f"⏰ You have been timed out in {guild_name}",
        fields=tuple(fields),
        color=COLOR_WARNING,
    )


REMOVAL_TITLES = {
    ActionType.KICK: "👢 You have been kicked from {guild}",
    ActionType.BAN: "🔨 You have been banned from {guild}",
}


def build_removal_dm(action: ActionType, guild_name: str, reason: str, moderator_name: str) -> Notice:
    """DM sent before a member is kicked or banned."""
    return Notice(
        title=REMOVAL_TITLES[action].format(guild=guild_name),
        fields=(("Reason", reason), ("Moderator", moderator_name)),
        color=COLOR_ERROR if action is ActionType.BAN else COLOR_WARNING,
    )
