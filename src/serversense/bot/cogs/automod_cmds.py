"""
Automod cog: the ``/automod`` command group.

Every subcommand is a direct, validated mutation of the guild's
:class:`GuildPolicy`. Invalid values are rejected by
``serversense.configuration.guild_policy`` before anything is stored and the
message is shown to the moderator. Responses are ephemeral to avoid leaking
configuration in public channels.

All subcommands require the Manage Server permission.
"""

from typing import Any, Awaitable

import discord
from discord import Option
from discord.ext import commands

from serversense.configuration.guild_policy import (
    MAX_SEVERITY_THRESHOLD,
    MIN_SEVERITY_THRESHOLD,
    GuildPolicy,
    PolicyValidationError,
)
from serversense.datatypes.moderation_datatypes import ActionType
from serversense.moderation.moderation_embed import COLOR_PRIMARY, COLOR_SUCCESS, COLOR_WARNING
from serversense.util.discord_utils import has_permissions
from serversense.util.logger import get_logger

logger = get_logger("automod_cog")

THRESHOLD_DESCRIPTIONS = {
    1: "Very sensitive - may flag normal conversation",
    2: "Sensitive - catches most mild issues",
    3: "Balanced - recommended for most servers",
    4: "Relaxed - only moderate issues",
    5: "Very relaxed - only clear violations",
    6: "Permissive - serious issues only",
    7: "Very permissive - obvious violations only",
    8: "Minimal - severe content only",
    9: "Almost off - extreme content only",
    10: "Strictest filter - maximum severity only",
}

ACTION_DESCRIPTIONS = {
    ActionType.NONE: "AutoMod will only log violations, no actions",
    ActionType.WARN: "AutoMod will only warn users, no other actions",
    ActionType.DELETE: "AutoMod can delete messages and warn users",
    ActionType.TIMEOUT: "AutoMod can timeout users (recommended)",
    ActionType.KICK: "AutoMod can kick users for severe violations",
    ActionType.BAN: "AutoMod can ban users for extreme violations",
}

ACTION_CHOICES = [
    discord.OptionChoice(name="Log only", value=ActionType.NONE.value),
    discord.OptionChoice(name="Warn only", value=ActionType.WARN.value),
    discord.OptionChoice(name="Delete messages", value=ActionType.DELETE.value),
    discord.OptionChoice(name="Timeout users", value=ActionType.TIMEOUT.value),
    discord.OptionChoice(name="Kick users", value=ActionType.KICK.value),
    discord.OptionChoice(name="Ban users", value=ActionType.BAN.value),
]


def _format_ids(ids, template: str) -> str:
    return ", ".join(template.format(i) for i in sorted(ids)) or "None"


def build_status_embed(policy: GuildPolicy) -> discord.Embed:
    embed = discord.Embed(title="🛡️ AutoMod Configuration", color=COLOR_PRIMARY)
    embed.add_field(name="Status", value="✅ Enabled" if policy.enabled else "❌ Disabled", inline=True)
    embed.add_field(name="Severity Threshold", value=f"{policy.severity_threshold}/10", inline=True)
    embed.add_field(name="Max Action", value=str(policy.action_ceiling), inline=True)
    embed.add_field(
        name="Log Channel",
        value=f"<#{policy.log_channel_id}>" if policy.log_channel_id else "Not set",
        inline=True,
    )
    embed.add_field(name="DM Users", value="✅ Yes" if policy.dm_on_action else "❌ No", inline=True)
    embed.add_field(name="Mod Immunity", value="✅ Yes" if policy.moderator_immunity else "❌ No", inline=True)
    embed.add_field(name="Public Warnings", value="✅ Yes" if policy.public_warnings else "❌ No", inline=True)
    embed.add_field(name="Ignored Channels", value=_format_ids(policy.ignored_channel_ids, "<#{}>"), inline=False)
    embed.add_field(name="Ignored Roles", value=_format_ids(policy.ignored_role_ids, "<@&{}>"), inline=False)
    embed.set_footer(text="AI-powered content moderation by ServerSense")
    return embed


class AutomodCog(commands.Cog):
    """Guild-level automod configuration."""

    automod = discord.SlashCommandGroup("automod", "Configure AI-powered auto-moderation")

    def __init__(self, discord_bot_instance, services):
        self.discord_bot_instance = discord_bot_instance
        self.database = services.database
        logger.info("[AUTOMOD CMDS] Automod cog loaded")

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        """Check guild context and Manage Server permission, replying on failure."""
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        if not has_permissions(ctx, manage_guild=True):
            await ctx.respond("You need Manage Server permission.", ephemeral=True)
            return False
        return True

    async def _guarded(self, ctx: discord.ApplicationContext, setting: str, operation: Awaitable[Any]) -> Any:
        """Await a storage update, turning validation errors into an ephemeral reply."""
        try:
            result = await operation
        except PolicyValidationError as exc:
            await ctx.respond(f"❌ {exc}", ephemeral=True)
            return None
        logger.info("[AUTOMOD CMDS] %s updated %s in guild %s", ctx.user.id, setting, ctx.guild_id)
        return result

    async def _update(self, ctx: discord.ApplicationContext, **fields) -> GuildPolicy | None:
        return await self._guarded(
            ctx, ", ".join(sorted(fields)), self.database.update_policy(ctx.guild_id, **fields)
        )

    async def _toggle_flag(self, ctx: discord.ApplicationContext, field_name: str, value: bool | None):
        """Set ``field_name`` to ``value``, or flip the stored value when omitted."""
        if value is None:
            return await self._guarded(ctx, field_name, self.database.toggle_policy_flag(ctx.guild_id, field_name))
        return await self._update(ctx, **{field_name: value})

    @automod.command(name="enable", description="Enable auto-moderation")
    async def enable(self, ctx: discord.ApplicationContext):
        if not await self._check_permissions(ctx):
            return
        if await self._update(ctx, enabled=True) is None:
            return
        embed = discord.Embed(
            title="🛡️ AutoMod Enabled",
            description="AI-powered auto-moderation is now active!",
            color=COLOR_SUCCESS,
        )
        embed.add_field(
            name="Recommended Setup",
            value=(
                "`/automod logchannel` - Set a log channel\n"
                "`/automod threshold` - Adjust sensitivity\n"
                "`/automod ignorechannel` - Exclude channels"
            ),
            inline=False,
        )
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="disable", description="Disable auto-moderation")
    async def disable(self, ctx: discord.ApplicationContext):
        if not await self._check_permissions(ctx):
            return
        if await self._update(ctx, enabled=False) is None:
            return
        embed = discord.Embed(
            title="🛡️ AutoMod Disabled",
            description="AI-powered auto-moderation has been disabled.",
            color=COLOR_WARNING,
        )
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="status", description="View current auto-moderation settings")
    async def status(self, ctx: discord.ApplicationContext):
        if not await self._check_permissions(ctx):
            return
        policy = await self.database.get_policy(ctx.guild_id)
        await ctx.respond(embed=build_status_embed(policy), ephemeral=True)

    @automod.command(name="threshold", description="Set the minimum severity to trigger actions")
    async def threshold(
        self,
        ctx: discord.ApplicationContext,
        level: Option(
            int,
            "Severity threshold (1-10)",
            min_value=MIN_SEVERITY_THRESHOLD,
            max_value=MAX_SEVERITY_THRESHOLD,
        ),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        policy = await self._update(ctx, severity_threshold=level)
        if policy is None:
            return
        embed = discord.Embed(
            title="🎚️ Threshold Updated",
            description=f"AutoMod will now trigger on severity **{policy.severity_threshold}** and above.",
            color=COLOR_SUCCESS,
        )
        embed.add_field(name="Sensitivity", value=THRESHOLD_DESCRIPTIONS.get(policy.severity_threshold, "Custom"))
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="maxaction", description="Set the maximum action automod can take")
    async def maxaction(
        self,
        ctx: discord.ApplicationContext,
        action: Option(str, "Maximum action allowed", choices=ACTION_CHOICES),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        policy = await self._update(ctx, action_ceiling=action)
        if policy is None:
            return
        embed = discord.Embed(
            title="⚡ Max Action Updated",
            description=f"Maximum action set to: **{policy.action_ceiling}**",
            color=COLOR_SUCCESS,
        )
        embed.add_field(name="Description", value=ACTION_DESCRIPTIONS[policy.action_ceiling])
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="ignorechannel", description="Add or remove a channel from the automod ignore list")
    async def ignorechannel(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Channel to ignore/unignore"),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        result = await self._guarded(
            ctx, "ignored_channel_ids", self.database.toggle_policy_id(ctx.guild_id, "ignored_channel_ids", channel.id)
        )
        if result is None:
            return
        policy, added = result
        embed = discord.Embed(
            title="📝 Ignored Channels Updated",
            description=f"{channel.mention} has been **{'added to' if added else 'removed from'}** the ignore list.",
            color=COLOR_SUCCESS,
        )
        embed.add_field(name="Currently Ignored", value=_format_ids(policy.ignored_channel_ids, "<#{}>"))
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="ignorerole", description="Add or remove a role from the automod ignore list")
    async def ignorerole(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role to ignore/unignore"),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        result = await self._guarded(
            ctx, "ignored_role_ids", self.database.toggle_policy_id(ctx.guild_id, "ignored_role_ids", role.id)
        )
        if result is None:
            return
        policy, added = result
        embed = discord.Embed(
            title="📝 Ignored Roles Updated",
            description=f"{role.mention} has been **{'added to' if added else 'removed from'}** the ignore list.",
            color=COLOR_SUCCESS,
        )
        embed.add_field(name="Currently Ignored", value=_format_ids(policy.ignored_role_ids, "<@&{}>"))
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="logchannel", description="Set the channel for automod logs (omit to disable)")
    async def logchannel(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Log channel (leave empty to disable)", required=False, default=None),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        if await self._update(ctx, log_channel_id=channel.id if channel else None) is None:
            return
        if channel:
            embed = discord.Embed(
                title="📋 Log Channel Set",
                description=f"AutoMod logs will be sent to {channel.mention}",
                color=COLOR_SUCCESS,
            )
        else:
            embed = discord.Embed(
                title="📋 Log Channel Disabled",
                description="AutoMod logging has been disabled.",
                color=COLOR_WARNING,
            )
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="dm", description="Toggle DM notifications to actioned users")
    async def dm(
        self,
        ctx: discord.ApplicationContext,
        enabled: Option(bool, "Send DMs to users when actioned (omit to toggle)", required=False, default=None),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        policy = await self._toggle_flag(ctx, "dm_on_action", enabled)
        if policy is None:
            return
        enabled = policy.dm_on_action
        await ctx.respond(
            f"✉️ DM notifications are now **{'enabled' if enabled else 'disabled'}**.", ephemeral=True
        )

    @automod.command(name="modimmunity", description="Toggle whether moderators are immune to automod")
    async def modimmunity(
        self,
        ctx: discord.ApplicationContext,
        immune: Option(bool, "Should mods be immune? (omit to toggle)", required=False, default=None),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        policy = await self._toggle_flag(ctx, "moderator_immunity", immune)
        if policy is None:
            return
        immune = policy.moderator_immunity
        await ctx.respond(
            f"🛡️ Moderators are now **{'immune to' if immune else 'checked by'}** AutoMod.", ephemeral=True
        )

    @automod.command(name="publicwarnings", description="Toggle the short public reminder posted on warnings")
    async def publicwarnings(
        self,
        ctx: discord.ApplicationContext,
        enabled: Option(bool, "Post public warnings (omit to toggle)", required=False, default=None),  # type: ignore
    ):
        if not await self._check_permissions(ctx):
            return
        policy = await self._toggle_flag(ctx, "public_warnings", enabled)
        if policy is None:
            return
        enabled = policy.public_warnings
        await ctx.respond(
            f"📢 Public warnings are now **{'enabled' if enabled else 'disabled'}**.", ephemeral=True
        )


def setup(discord_bot_instance, services):
    """Add the automod cog to the supplied Discord bot instance."""
    discord_bot_instance.add_cog(AutomodCog(discord_bot_instance, services))
