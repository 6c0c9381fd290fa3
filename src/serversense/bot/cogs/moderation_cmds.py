"""
Moderation cog: manual moderator commands.

Provides ``/warn``, ``/warnings``, ``/modlogs``, ``/timeout``, ``/kick``,
``/ban``, ``/unban`` and ``/purge``. Manual warnings go through
:meth:`EnforcementCoordinator.issue_warning`, so the five-warning escalation
behaves the same whether automod or a moderator issued the warning. Every
executed action is written to the audit log with the moderator as actor and copied to the guild's log channel when one is set.

Design notes and expectations
- Commands perform standard safety checks (permission, guild member,
  bot targets, self-moderation prevention, administrator protection,
  role hierarchy).
- Direct messages to the target are best effort; closed DMs never fail a
  command.
- Errors are caught and reported to the invoker via ephemeral responses.
"""

import re
from datetime import timedelta

import discord
from discord import Option
from discord.ext import commands

from serversense.datatypes.moderation_datatypes import ActionType, AuditEntry
from serversense.moderation.moderation_embed import (
    COLOR_ERROR,
    COLOR_INFO,
    COLOR_SUCCESS,
    COLOR_WARNING,
    build_manual_warning_dm,
    build_removal_dm,
    build_timeout_dm,
)
from serversense.util.discord_utils import DURATION_CHOICES, has_permissions, notice_to_embed, parse_duration
from serversense.util.format_utils import format_timedelta, humanize_timestamp, truncate
from serversense.util.logger import get_logger

logger = get_logger("moderation_cog")

RECENT_WARNINGS_SHOWN = 5
MAX_MODLOG_ENTRIES = 25
MAX_BAN_DELETE_DAYS = 7
MAX_PURGE_MESSAGES = 100
BULK_DELETE_MAX_AGE = timedelta(days=14)
USER_ID_PATTERN = re.compile(r"\d{17,19}")


def purge_matches(message, cutoff, author_id, needle, bots_only) -> bool:
    """True when ``message`` is young enough to bulk delete and passes every filter given."""
    if message.created_at < cutoff:
        return False
    if author_id is not None and message.author.id != author_id:
        return False
    if needle and needle not in (message.content or "").lower():
        return False
    if bots_only and not message.author.bot:
        return False
    return True


class ModerationActionCog(commands.Cog):
    """Cog containing manual moderation slash commands."""

    def __init__(self, discord_bot_instance, services):
        """Store the bot instance and the shared moderation services.

        Parameters
        ----------
        discord_bot_instance:
            Active :class:`discord.Bot` instance.
        services:
            :class:`BotServices` holding the database and enforcement coordinator.
        """
        self.discord_bot_instance = discord_bot_instance
        self.database = services.database
        self.enforcement = services.enforcement
        logger.info("Moderation cog loaded")

    async def check_moderation_permissions(
        self,
        application_context: discord.ApplicationContext,
        target_user: discord.Member,
        required_permission_name: str,
    ) -> bool:
        """Run shared pre-checks for moderation commands.

        Returns
        -------
        bool
            ``True`` when allowed to proceed; ``False`` if an error was sent to invoker.
        """
        if not has_permissions(application_context, **{required_permission_name: True}):
            await application_context.respond("You do not have permission to use this command.", ephemeral=True)
            return False

        if not isinstance(target_user, discord.Member):
            await application_context.respond("The specified user is not a member of this server.", ephemeral=True)
            return False

        if target_user.bot:
            await application_context.respond("You cannot perform moderation actions on bots.", ephemeral=True)
            return False

        if target_user.id == application_context.user.id:
            await application_context.respond("You cannot perform moderation actions on yourself.", ephemeral=True)
            return False

        if target_user.guild_permissions.administrator:
            await application_context.respond(
                "You cannot perform moderation actions against administrators.", ephemeral=True
            )
            return False

        author = application_context.author
        guild = application_context.guild
        if guild is not None and author.id != guild.owner_id and target_user.top_role >= author.top_role:
            await application_context.respond(
                "You cannot moderate a member whose top role is equal to or higher than yours.", ephemeral=True
            )
            return False

        return True

    async def _try_direct_message(self, user: discord.Member, embed: discord.Embed) -> bool:
        try:
            await user.send(embed=embed)
            return True
        except (discord.Forbidden, discord.HTTPException) as e:
            logger.debug("Could not DM user %s: %s", user.id, e)
            return False

    async def _record(self, ctx, user_id: int, action: str, reason: str) -> None:
        await self.database.append_audit_entry(
            AuditEntry(guild_id=ctx.guild_id, user_id=user_id, action=action, reason=reason, actor_id=ctx.user.id)
        )

    async def _send_mod_log(self, ctx, embed: discord.Embed) -> None:
        """Copy a moderator action to the guild's log channel, if one is configured and reachable."""
        policy = await self.database.get_policy(ctx.guild_id)
        if policy.log_channel_id is None:
            return
        channel = ctx.guild.get_channel(policy.log_channel_id)
        if channel is None:
            logger.debug("Log channel %s not found in guild %s", policy.log_channel_id, ctx.guild_id)
            return
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning("Could not post to log channel %s: %s", policy.log_channel_id, e)

    @commands.slash_command(name="warn", description="Warn a user for a specified reason.")
    async def warn(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to warn.", required=True),  # type: ignore
        reason: Option(str, "Reason for the warning.", required=True),  # type: ignore
        silent: Option(bool, "Don't DM the user.", required=False, default=False),  # type: ignore
    ) -> None:
        """Record a warning, DM the user, and escalate at the warning threshold."""
        if not await self.check_moderation_permissions(ctx, user, "moderate_members"):
            return

        try:
            await self.database.append_audit_entry(
                AuditEntry(
                    guild_id=ctx.guild_id,
                    user_id=user.id,
                    action=ActionType.WARN.value,
                    reason=reason,
                    actor_id=ctx.user.id,
                )
            )
            outcome = await self.enforcement.issue_warning(ctx.guild_id, user.id, notice_channel_id=ctx.channel_id)
        except Exception as e:
            logger.exception("Error warning user %s: %s", user.id, e)
            await ctx.respond("❌ An error occurred while recording the warning.", ephemeral=True)
            return

        dm_sent = False
        if not silent:
            notice = build_manual_warning_dm(ctx.guild.name, reason, str(ctx.user), outcome.total)
            dm_sent = await self._try_direct_message(user, notice_to_embed(notice))

        embed = discord.Embed(
            title="⚠️ User Warned",
            description=f"{user.mention} has been warned.",
            color=COLOR_WARNING,
        )
        embed.add_field(name="Reason", value=reason, inline=False)
        embed.add_field(name="Total Warnings", value=str(outcome.total), inline=True)
        embed.add_field(name="DM Sent", value="✅ Yes" if dm_sent else "❌ No", inline=True)
        if outcome.escalated:
            embed.add_field(
                name="Escalation",
                value=f"Automatically timed out for {format_timedelta(outcome.escalation_duration)}",
                inline=False,
            )
        embed.set_footer(text=f"Warned by {ctx.user}")
        await ctx.respond(embed=embed)
        logger.info("[MODERATION CMDS] %s warned %s in guild %s (total %d)", ctx.user.id, user.id, ctx.guild_id, outcome.total)

    @commands.slash_command(name="warnings", description="View or clear a user's warnings.")
    async def warnings(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to check.", required=True),  # type: ignore
        clear: Option(bool, "Reset the user's warnings.", required=False, default=False),  # type: ignore
    ) -> None:
        """Show the warning count and the most recent warnings, or reset them."""
        if not has_permissions(ctx, moderate_members=True):
            await ctx.respond("You do not have permission to use this command.", ephemeral=True)
            return

        if clear:
            await self.database.reset_warnings(ctx.guild_id, user.id)
            await self.database.append_audit_entry(
                AuditEntry(
                    guild_id=ctx.guild_id,
                    user_id=user.id,
                    action="clear_warnings",
                    reason="Warnings cleared",
                    actor_id=ctx.user.id,
                )
            )
            await ctx.respond(f"✅ Cleared all warnings for {user.mention}.", ephemeral=True)
            logger.info("[MODERATION CMDS] %s cleared warnings of %s in guild %s", ctx.user.id, user.id, ctx.guild_id)
            return

        count = await self.database.get_warning_count(ctx.guild_id, user.id)
        recent = await self.database.query_audit_entries(
            ctx.guild_id, user_id=user.id, limit=RECENT_WARNINGS_SHOWN, action=ActionType.WARN.value
        )

        embed = discord.Embed(title=f"⚠️ Warnings for {user}", color=COLOR_WARNING)
        embed.add_field(name="Total Warnings", value=str(count), inline=False)
        if recent:
            lines = [
                f"**{humanize_timestamp(entry.created_at)}** "
                f"({'AutoMod' if entry.by_system else f'<@{entry.actor_id}>'}): {truncate(entry.reason, 100)}"
                for entry in recent
            ]
            embed.add_field(name="Recent Warnings", value="\n".join(lines), inline=False)
        await ctx.respond(embed=embed, ephemeral=True)

    @commands.slash_command(name="modlogs", description="View moderation logs for a user.")
    async def modlogs(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to check.", required=True),  # type: ignore
        limit: Option(int, "Number of entries to show.", min_value=1, max_value=MAX_MODLOG_ENTRIES, default=10),  # type: ignore
    ) -> None:
        """List the user's audit entries, newest first."""
        if not has_permissions(ctx, moderate_members=True):
            await ctx.respond("You do not have permission to use this command.", ephemeral=True)
            return

        entries = await self.database.query_audit_entries(ctx.guild_id, user_id=user.id, limit=limit)
        if not entries:
            await ctx.respond(f"No moderation logs found for {user.mention}.", ephemeral=True)
            return

        embed = discord.Embed(title=f"📋 Moderation Logs for {user}", color=COLOR_INFO)
        for entry in entries:
            actor = "AutoMod" if entry.by_system else f"<@{entry.actor_id}>"
            details = f"By: {actor}\nReason: {truncate(entry.reason, 200)}"
            if entry.duration:
                details += f"\nDuration: {entry.duration}"
            embed.add_field(
                name=f"{entry.action.upper()} - {humanize_timestamp(entry.created_at)}",
                value=details,
                inline=False,
            )
        embed.set_footer(text=f"Showing {len(entries)} most recent entries")
        await ctx.respond(embed=embed, ephemeral=True)

    @commands.slash_command(name="timeout", description="Timeout a user for a specified duration.")
    async def timeout(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to timeout.", required=True),  # type: ignore
        duration: Option(str, "Duration of the timeout.", choices=DURATION_CHOICES, default="10 mins"),  # type: ignore
        reason: Option(str, "Reason for the timeout.", default="No reason provided."),  # type: ignore
    ) -> None:
        """Timeout a member and record the action."""
        if not await self.check_moderation_permissions(ctx, user, "moderate_members"):
            return

        delta = parse_duration(duration)
        if delta is None:
            await ctx.respond(f"❌ Unknown duration: {duration}", ephemeral=True)
            return

        try:
            await user.timeout_for(delta, reason=f"{reason} (by {ctx.user})")
        except discord.Forbidden:
            await ctx.respond("❌ I don't have permission to timeout this user.", ephemeral=True)
            return
        except discord.HTTPException as e:
            logger.error("Failed to timeout user %s: %s", user.id, e)
            await ctx.respond("❌ An error occurred while processing the command.", ephemeral=True)
            return

        duration_text = format_timedelta(delta)
        await self.database.append_audit_entry(
            AuditEntry(
                guild_id=ctx.guild_id,
                user_id=user.id,
                action=ActionType.TIMEOUT.value,
                reason=reason,
                actor_id=ctx.user.id,
                duration=duration_text,
            )
        )
        await self._try_direct_message(
            user, notice_to_embed(build_timeout_dm(ctx.guild.name, reason, delta, str(ctx.user)))
        )

        embed = discord.Embed(
            title="⏰ User Timed Out",
            description=f"{user.mention} has been timed out for {duration_text}.",
            color=COLOR_SUCCESS,
        )
        embed.add_field(name="Reason", value=reason, inline=False)
        embed.set_footer(text=f"Timed out by {ctx.user}")
        await ctx.respond(embed=embed)
        logger.info("[MODERATION CMDS] %s timed out %s in guild %s for %s", ctx.user.id, user.id, ctx.guild_id, duration_text)

    @commands.slash_command(name="kick", description="Kick a user from the server.")
    async def kick(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to kick.", required=True),  # type: ignore
        reason: Option(str, "Reason for the kick.", default="No reason provided."),  # type: ignore
        silent: Option(bool, "Don't DM the user.", required=False, default=False),  # type: ignore
    ) -> None:
        """Remove a member from the guild; they can rejoin with an invite."""
        if not await self.check_moderation_permissions(ctx, user, "kick_members"):
            return

        dm_sent = False
        if not silent:
            notice = build_removal_dm(ActionType.KICK, ctx.guild.name, reason, str(ctx.user))
            dm_sent = await self._try_direct_message(user, notice_to_embed(notice))

        try:
            await user.kick(reason=f"{reason} (by {ctx.user})")
        except discord.Forbidden:
            await ctx.respond("❌ I don't have permission to kick this user.", ephemeral=True)
            return
        except discord.HTTPException as e:
            logger.error("Failed to kick user %s: %s", user.id, e)
            await ctx.respond("❌ An error occurred while processing the command.", ephemeral=True)
            return

        await self._record(ctx, user.id, ActionType.KICK.value, reason)

        embed = discord.Embed(title="👢 User Kicked", description=f"{user.mention} has been kicked.", color=COLOR_WARNING)
        embed.add_field(name="User", value=f"{user} ({user.id})", inline=True)
        embed.add_field(name="DM Sent", value="✅ Yes" if dm_sent else "❌ No", inline=True)
        embed.add_field(name="Reason", value=reason, inline=False)
        embed.set_footer(text=f"Kicked by {ctx.user}")
        await ctx.respond(embed=embed)
        await self._send_mod_log(ctx, embed)
        logger.info("[MODERATION CMDS] %s kicked %s in guild %s", ctx.user.id, user.id, ctx.guild_id)

    @commands.slash_command(name="ban", description="Ban a user from the server.")
    async def ban(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "The user to ban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the ban.", default="No reason provided."),  # type: ignore
        delete_days: Option(
            int,
            "Days of their messages to delete (0-7).",
            min_value=0,
            max_value=MAX_BAN_DELETE_DAYS,
            default=0,
        ),  # type: ignore
        silent: Option(bool, "Don't DM the user.", required=False, default=False),  # type: ignore
    ) -> None:
        """Ban a user, who may or may not still be a member of the guild."""
        if isinstance(user, discord.Member):
            if not await self.check_moderation_permissions(ctx, user, "ban_members"):
                return
        elif not has_permissions(ctx, ban_members=True):
            await ctx.respond("You do not have permission to use this command.", ephemeral=True)
            return

        dm_sent = False
        if not silent:
            notice = build_removal_dm(ActionType.BAN, ctx.guild.name, reason, str(ctx.user))
            dm_sent = await self._try_direct_message(user, notice_to_embed(notice))

        try:
            await ctx.guild.ban(
                user,
                reason=f"{reason} (by {ctx.user})",
                delete_message_seconds=int(timedelta(days=delete_days).total_seconds()),
            )
        except discord.Forbidden:
            await ctx.respond("❌ I don't have permission to ban this user.", ephemeral=True)
            return
        except discord.HTTPException as e:
            logger.error("Failed to ban user %s: %s", user.id, e)
            await ctx.respond("❌ An error occurred while processing the command.", ephemeral=True)
            return

        await self._record(ctx, user.id, ActionType.BAN.value, reason)

        embed = discord.Embed(title="🔨 User Banned", description=f"{user.mention} has been banned.", color=COLOR_ERROR)
        embed.add_field(name="User", value=f"{user} ({user.id})", inline=True)
        embed.add_field(name="Messages Deleted", value=f"{delete_days} day(s)", inline=True)
        embed.add_field(name="DM Sent", value="✅ Yes" if dm_sent else "❌ No", inline=True)
        embed.add_field(name="Reason", value=reason, inline=False)
        embed.set_footer(text=f"Banned by {ctx.user}")
        await ctx.respond(embed=embed)
        await self._send_mod_log(ctx, embed)
        logger.info("[MODERATION CMDS] %s banned %s in guild %s", ctx.user.id, user.id, ctx.guild_id)

    @commands.slash_command(name="unban", description="Unban a user from the server.")
    async def unban(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "The ID of the user to unban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the unban.", default="No reason provided."),  # type: ignore
    ) -> None:
        """Lift a ban by user ID."""
        if not has_permissions(ctx, ban_members=True):
            await ctx.respond("You do not have permission to use this command.", ephemeral=True)
            return

        user_id = user_id.strip()
        if not USER_ID_PATTERN.fullmatch(user_id):
            await ctx.respond("❌ Invalid user ID format.", ephemeral=True)
            return

        try:
            ban_entry = await ctx.guild.fetch_ban(discord.Object(id=int(user_id)))
        except discord.NotFound:
            await ctx.respond("❌ This user is not banned.", ephemeral=True)
            return

        try:
            await ctx.guild.unban(ban_entry.user, reason=f"{reason} (by {ctx.user})")
        except discord.HTTPException as e:
            logger.error("Failed to unban user %s: %s", user_id, e)
            await ctx.respond("❌ An error occurred while processing the command.", ephemeral=True)
            return

        await self._record(ctx, ban_entry.user.id, "unban", reason)

        embed = discord.Embed(title="✅ User Unbanned", color=COLOR_SUCCESS)
        embed.add_field(name="User", value=f"{ban_entry.user} ({ban_entry.user.id})", inline=True)
        embed.add_field(name="Reason", value=reason, inline=False)
        embed.set_footer(text=f"Unbanned by {ctx.user}")
        await ctx.respond(embed=embed)
        await self._send_mod_log(ctx, embed)
        logger.info("[MODERATION CMDS] %s unbanned %s in guild %s", ctx.user.id, user_id, ctx.guild_id)

    @commands.slash_command(name="purge", description="Bulk delete recent messages in this channel.")
    async def purge(
        self,
        ctx: discord.ApplicationContext,
        amount: Option(int, "Number of messages to delete (1-100).", min_value=1, max_value=MAX_PURGE_MESSAGES),  # type: ignore
        user: Option(discord.Member, "Only delete messages from this user.", required=False, default=None),  # type: ignore
        contains: Option(str, "Only delete messages containing this text.", required=False, default=None),  # type: ignore
        bots: Option(bool, "Only delete messages from bots.", required=False, default=False),  # type: ignore
    ) -> None:
        """Delete up to ``amount`` matching messages from the last hundred in the channel.

        Messages older than 14 days are skipped; Discord refuses to bulk delete them.
        """
        if not has_permissions(ctx, manage_messages=True):
            await ctx.respond("You do not have permission to use this command.", ephemeral=True)
            return

        await ctx.defer(ephemeral=True)
        cutoff = discord.utils.utcnow() - BULK_DELETE_MAX_AGE
        author_id = user.id if user is not None else None
        needle = contains.lower() if contains else None

        try:
            recent = [message async for message in ctx.channel.history(limit=MAX_PURGE_MESSAGES)]
            selected = [m for m in recent if purge_matches(m, cutoff, author_id, needle, bots)][:amount]
            if not selected:
                await ctx.followup.send("❌ No messages found matching your criteria.", ephemeral=True)
                return
            await ctx.channel.delete_messages(selected)
        except discord.HTTPException as e:
            logger.error("Failed to purge messages in channel %s: %s", ctx.channel_id, e)
            await ctx.followup.send("❌ An error occurred while deleting messages.", ephemeral=True)
            return

        filters = []
        if user is not None:
            filters.append(f"from {user}")
        if contains:
            filters.append(f'containing "{contains}"')
        if bots:
            filters.append("from bots")
        filter_text = ", ".join(filters) or "None"

        await self._record(ctx, ctx.user.id, "purge", f"Deleted {len(selected)} messages in #{ctx.channel.name}")

        embed = discord.Embed(
            title="🗑️ Messages Purged",
            description=f"Deleted **{len(selected)}** messages in <#{ctx.channel_id}>.",
            color=COLOR_SUCCESS,
        )
        embed.add_field(name="Filters", value=filter_text, inline=False)
        embed.set_footer(text=f"Purged by {ctx.user}")
        await ctx.followup.send(embed=embed, ephemeral=True)
        await self._send_mod_log(ctx, embed)
        logger.info(
            "[MODERATION CMDS] %s purged %d messages in channel %s", ctx.user.id, len(selected), ctx.channel_id
        )



def setup(discord_bot_instance, services):
    """Register the moderation cog with the bot."""
    discord_bot_instance.add_cog(ModerationActionCog(discord_bot_instance, services))
