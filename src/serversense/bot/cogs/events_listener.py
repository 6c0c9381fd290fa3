"""Event listener Cog for ServerSense.

This cog handles bot lifecycle events (on_ready, guild join and removal) and
application command error handling. Message events are handled by the
MessageListenerCog.
"""

import discord
from discord.ext import commands

from serversense.util.logger import get_logger

logger = get_logger("events_listener_cog")


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and command error handlers."""

    def __init__(self, discord_bot_instance, services):
        self.bot = discord_bot_instance
        self.database = services.database
        self.ai_enabled = services.judge.settings.enabled
        logger.info("Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """Set presence and make sure every joined guild has a stored policy."""
        if self.bot.user:
            await self._update_presence()
            logger.info(f"Bot connected as {self.bot.user} (ID: {self.bot.user.id})")
        else:
            logger.warning("Bot partially connected, but user information not yet available.")

        for guild in self.bot.guilds:
            await self.database.get_policy(guild.id)
        logger.info(f"Serving {len(self.bot.guilds)} guild(s)")
        logger.info("--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--")

    async def _update_presence(self) -> None:
        """Update the bot's Discord presence based on whether the AI judge is configured."""
        if not self.bot.user:
            return

        if self.ai_enabled:
            status = discord.Status.online
            activity_name = "your server | /help"
        else:
            status = discord.Status.idle
            activity_name = "your server with pattern checks only"

        await self.bot.change_presence(
            status=status,
            activity=discord.Activity(type=discord.ActivityType.watching, name=activity_name),
        )

    @commands.Cog.listener(name="on_guild_join")
    async def on_guild_join(self, guild: discord.Guild):
        """Create the default policy for a newly joined guild."""
        await self.database.get_policy(guild.id)
        logger.info(f"Joined guild {guild.name} ({guild.id})")

    @commands.Cog.listener(name="on_guild_remove")
    async def on_guild_remove(self, guild: discord.Guild):
        """Purge everything stored for a guild the bot was removed from."""
        await self.database.delete_guild(guild.id)
        logger.info(f"Removed from guild {guild.name} ({guild.id}), stored data deleted")

    @commands.Cog.listener(name="on_application_command_error")
    async def on_application_command_error(self, application_context: discord.ApplicationContext, error: Exception):
        """Log application command errors and tell the invoker something went wrong."""
        if isinstance(error, commands.CommandNotFound):
            return

        command_name = getattr(application_context.command, "name", "<unknown>")
        logger.error(f"Error in command '{command_name}': {error}", exc_info=True)

        error_message = "❌ Something went wrong while running this command."
        try:
            await application_context.respond(error_message, ephemeral=True)
        except discord.InteractionResponded:
            await application_context.followup.send(error_message, ephemeral=True)


def setup(discord_bot_instance, services):
    """Register the EventsListenerCog with the bot."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, services))
