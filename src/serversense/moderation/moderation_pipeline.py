"""
Per-message moderation pipeline.

Wires the pre-filters, the decision engine, the policy resolver and the
enforcement coordinator together. One call to :meth:`ModerationPipeline.process`
handles one inbound message from start to finish; calls for different
messages are independent and may run concurrently.
"""

from __future__ import annotations

from typing import Optional, Protocol

from serversense.configuration.guild_policy import GuildPolicy
from serversense.datatypes.moderation_datatypes import ExecutionReport, MessageContext
from serversense.moderation import policy_resolver
from serversense.moderation.decision_engine import DecisionEngine
from serversense.moderation.enforcement import EnforcementCoordinator
from serversense.util.logger import get_logger

logger = get_logger("moderation_pipeline")


class PolicySource(Protocol):
    async def get_policy(self, guild_id: int) -> GuildPolicy:
        ...


def skip_reason(context: MessageContext, policy: GuildPolicy) -> Optional[str]:
    """Return why a message is exempt from automod, or None if it must be checked."""
    if context.sender_is_bot:
        return "bot author"
    if not policy.enabled:
        return "automod disabled"
    if not context.text.strip():
        return "empty message"
    if policy.moderator_immunity and context.sender_is_moderator:
        return "moderator immunity"
    if policy.is_channel_ignored(context.channel_id):
        return "ignored channel"
    if policy.has_ignored_role(context.sender_role_ids):
        return "ignored role"
    return None


class ModerationPipeline:
    """Runs a message through every moderation stage."""

    def __init__(
        self,
        policies: PolicySource,
        decision_engine: DecisionEngine,
        enforcement: EnforcementCoordinator,
    ) -> None:
        self.policies = policies
        self.decision_engine = decision_engine
        self.enforcement = enforcement

    async def process(self, context: MessageContext) -> Optional[ExecutionReport]:
        """
        Moderate one message.

        Returns:
            The enforcement report, or None when the message was skipped,
            judged safe, or suppressed by the guild policy.
        """
        if context.sender_is_bot:
            return None

        policy = await self.policies.get_policy(context.guild_id)
        reason = skip_reason(context, policy)
        if reason is not None:
            logger.debug("[PIPELINE] Skipping message %s: %s", context.message_id, reason)
            return None

        judgment = await self.decision_engine.decide(context.text, context)
        plan = policy_resolver.resolve(judgment, policy)
        if plan is None:
            if not judgment.safe:
                logger.debug(
                    "[PIPELINE] Suppressed %s judgment (severity %d < threshold %d or disabled)",
                    judgment.source,
                    judgment.severity,
                    policy.severity_threshold,
                )
            return None

        logger.info(
            "[PIPELINE] Message %s by %s in guild %s flagged: %s (severity %d, source %s) -> %s",
            context.message_id,
            context.sender_id,
            context.guild_id,
            ", ".join(plan.violation_names()),
            plan.severity,
            plan.source,
            plan.action,
        )
        return await self.enforcement.apply(plan, context)
