"""
py-cord implementation of :class:`ModerationTransport`.

Methods raise ``discord.HTTPException`` subclasses (and ``LookupError`` when a
guild, member or channel cannot be resolved); the enforcement coordinator
catches and logs them per step.
"""

from __future__ import annotations

import datetime
from typing import Optional

import discord

from serversense.datatypes.moderation_datatypes import MessageContext, Notice
from serversense.util.discord_utils import notice_to_embed
from serversense.util.logger import get_logger

logger = get_logger("discord_transport")


class DiscordTransport:
    """Performs moderation side effects through a connected ``discord.Bot``."""

    def __init__(self, discord_bot_instance: discord.Bot) -> None:
        self.bot = discord_bot_instance

    async def _resolve_guild(self, guild_id: int) -> discord.Guild:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            raise LookupError(f"guild {guild_id} is not available")
        return guild

    async def _resolve_member(self, guild: discord.Guild, user_id: int) -> discord.Member:
        member = guild.get_member(user_id)
        if member is None:
            member = await guild.fetch_member(user_id)
        return member

    async def _resolve_channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise LookupError(f"channel {channel_id} cannot receive messages")
        return channel

    async def delete_message(self, context: MessageContext) -> None:
        channel = await self._resolve_channel(context.channel_id)
        if not hasattr(channel, "get_partial_message"):
            raise LookupError(f"channel {context.channel_id} does not support message lookup")
        await channel.get_partial_message(context.message_id).delete()

    async def timeout_member(self, guild_id: int, user_id: int, duration: datetime.timedelta, reason: str) -> None:
        guild = await self._resolve_guild(guild_id)
        member = await self._resolve_member(guild, user_id)
        await member.timeout_for(duration, reason=reason)

    async def can_timeout(self, guild_id: int, user_id: int) -> bool:
        """Mirror Discord's own rules: bot permission, role hierarchy, no owner or admins."""
        guild = await self._resolve_guild(guild_id)
        try:
            member = await self._resolve_member(guild, user_id)
        except discord.NotFound:
            return False
        me = guild.me
        if me is None or not me.guild_permissions.moderate_members:
            return False
        if member.id == guild.owner_id or member.guild_permissions.administrator:
            return False
        return me.top_role > member.top_role

    async def send_direct_notice(self, user_id: int, notice: Notice) -> None:
        user = self.bot.get_user(user_id)
        if user is None:
            user = await self.bot.fetch_user(user_id)
        await user.send(embed=notice_to_embed(notice))

    async def send_channel_notice(
        self, channel_id: int, notice: Notice, delete_after: Optional[float] = None
    ) -> None:
        channel = await self._resolve_channel(channel_id)
        await channel.send(embed=notice_to_embed(notice), delete_after=delete_after)
        logger.debug("[DISCORD TRANSPORT] Sent '%s' to channel %s", notice.title or "notice", channel_id)
