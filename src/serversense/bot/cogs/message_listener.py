"""Message listener Cog for ServerSense.

This cog feeds every guild message into the moderation pipeline. Bots,
webhooks and direct messages are dropped before any work is done; the rest of
the pre-filtering (ignored channels and roles, moderator immunity) happens in
the pipeline against the guild's stored policy.
"""

import discord
from discord.ext import commands

from serversense.util import discord_utils
from serversense.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for routing new messages to automod."""

    def __init__(self, discord_bot_instance, services):
        self.discord_bot_instance = discord_bot_instance
        self.pipeline = services.pipeline
        logger.info("Message listener cog loaded")

    @staticmethod
    def _should_process_message(message: discord.Message) -> bool:
        """Return True for non-empty messages from guild members."""
        if message.guild is None:
            return False
        if message.webhook_id or discord_utils.is_ignored_author(message.author):
            return False
        return bool((message.content or "").strip())

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        """
        Run automod on a new message.

        Errors are logged and never propagate into the gateway event loop,
        so one bad message cannot stop moderation of the next.
        """
        if not self._should_process_message(message):
            return

        context = discord_utils.build_message_context(message)
        logger.debug("Received message from %s: %s", message.author, context.text[:80])
        try:
            report = await self.pipeline.process(context)
        except Exception as e:
            logger.error("Error moderating message %s: %s", message.id, e, exc_info=True)
            return

        if report is not None and report.failures:
            logger.warning(
                "Moderation of message %s completed with %d failed step(s)", message.id, len(report.failures)
            )


def setup(discord_bot_instance, services):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, services))
