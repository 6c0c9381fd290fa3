"""Stateless py-cord helpers shared by the transport and the cogs."""

from __future__ import annotations

import datetime
from typing import Union

import discord

from serversense.datatypes.moderation_datatypes import MessageContext, Notice


# Discord caps member timeouts at 28 days
DURATIONS = {
    "60 secs": datetime.timedelta(seconds=60),
    "5 mins": datetime.timedelta(minutes=5),
    "10 mins": datetime.timedelta(minutes=10),
    "30 mins": datetime.timedelta(minutes=30),
    "1 hour": datetime.timedelta(hours=1),
    "6 hours": datetime.timedelta(hours=6),
    "1 day": datetime.timedelta(days=1),
    "1 week": datetime.timedelta(weeks=1),
    "28 days": datetime.timedelta(days=28),
}

DURATION_CHOICES = list(DURATIONS.keys())


def parse_duration(label: str) -> datetime.timedelta | None:
    """Return the timedelta for a label from ``DURATION_CHOICES``, or None."""
    return DURATIONS.get(label)


def is_ignored_author(author: Union[discord.User, discord.Member]) -> bool:
    """
    Check if an author should be ignored by moderation handlers (bots, webhooks, non-members).
    """
    return author.bot or not isinstance(author, discord.Member)


def is_moderator(member: Union[discord.User, discord.Member]) -> bool:
    """True when ``member`` can manage messages in the guild."""
    if not isinstance(member, discord.Member):
        return False
    perms = member.guild_permissions
    return bool(perms.administrator or perms.manage_messages)


def has_permissions(application_context: discord.ApplicationContext, **required_permissions) -> bool:
    """
    Check if the command issuer has all specified permissions in the guild.

    Args:
        application_context (discord.ApplicationContext): The command context.
        **required_permissions: Permission flags to check.

    Returns:
        bool: True if all permissions are present, False otherwise.
    """
    if not isinstance(application_context.author, discord.Member):
        return False
    return all(
        getattr(application_context.author.guild_permissions, permission_name, False)
        for permission_name in required_permissions
    )


def build_message_context(message: discord.Message) -> MessageContext:
    """Snapshot the fields of ``message`` the moderation pipeline needs."""
    author = message.author
    member = author if isinstance(author, discord.Member) else None
    guild = message.guild
    return MessageContext(
        text=message.content or "",
        message_id=message.id,
        guild_id=guild.id if guild else 0,
        channel_id=message.channel.id,
        sender_id=author.id,
        sender_name=getattr(author, "name", "") or "",
        channel_name=getattr(message.channel, "name", "") or "",
        guild_name=guild.name if guild else "",
        sender_role_ids=frozenset(role.id for role in member.roles) if member else frozenset(),
        sender_is_moderator=is_moderator(author),
        sender_is_bot=bool(author.bot or message.webhook_id),
    )


def notice_to_embed(notice: Notice) -> discord.Embed:
    """Render a :class:`Notice` as a Discord embed."""
    embed = discord.Embed(
        title=notice.title or None,
        description=notice.description or None,
        color=notice.color,
        timestamp=discord.utils.utcnow(),
    )
    for name, value in notice.fields:
        embed.add_field(name=name, value=value or "\u200b", inline=len(value) <= 40)
    if notice.footer:
        embed.set_footer(text=notice.footer)
    return embed
