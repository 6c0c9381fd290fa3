"""
General utility cog: ``/ping``, ``/help`` and ``/serverinfo``.
"""

import discord
from discord.ext import commands

from serversense.moderation.moderation_embed import COLOR_PRIMARY
from serversense.util.logger import get_logger

logger = get_logger("general_cog")

HELP_SECTIONS = (
    (
        "🛡️ AutoMod",
        "`/automod enable` `/automod disable` `/automod status`\n"
        "`/automod threshold` `/automod maxaction` `/automod logchannel`\n"
        "`/automod ignorechannel` `/automod ignorerole`\n"
        "`/automod dm` `/automod modimmunity` `/automod publicwarnings`",
    ),
    (
        "🔨 Moderation",
        "`/warn` `/warnings` `/modlogs` `/timeout`\n"
        "`/kick` `/ban` `/unban` `/purge`",
    ),
    (
        "🤖 Assistant",
        "`/chat` `/clearhistory`",
    ),
    (
        "🔧 Utility",
        "`/ping` `/help` `/serverinfo`",
    ),
)


class GeneralCog(commands.Cog):
    """General commands for the bot."""

    def __init__(self, discord_bot_instance, services=None):
        self.discord_bot_instance = discord_bot_instance
        logger.info("General cog loaded")

    @commands.slash_command(name="ping", description="Check the bot's latency")
    async def ping(self, ctx: discord.ApplicationContext):
        latency_ms = round(self.discord_bot_instance.latency * 1000)
        await ctx.respond(f"🏓 Pong! Latency: {latency_ms}ms", ephemeral=True)

    @commands.slash_command(name="help", description="Show what ServerSense can do")
    async def help(self, ctx: discord.ApplicationContext):
        embed = discord.Embed(
            title="ServerSense Help",
            description="AI-assisted moderation with configurable per-server policies.",
            color=COLOR_PRIMARY,
        )
        for name, value in HELP_SECTIONS:
            embed.add_field(name=name, value=value, inline=False)
        await ctx.respond(embed=embed, ephemeral=True)

    @commands.slash_command(name="serverinfo", description="Display information about this server")
    async def serverinfo(self, ctx: discord.ApplicationContext):
        guild = ctx.guild
        if guild is None:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return

        embed = discord.Embed(title=f"📊 {guild.name}", color=COLOR_PRIMARY)
        if guild.icon:
            embed.set_thumbnail(url=guild.icon.url)
        embed.add_field(name="Owner", value=f"<@{guild.owner_id}>", inline=True)
        embed.add_field(name="Created", value=f"<t:{int(guild.created_at.timestamp())}:R>", inline=True)
        embed.add_field(name="Members", value=str(guild.member_count or 0), inline=True)
        embed.add_field(
            name="Channels",
            value=(
                f"💬 {len(guild.text_channels)} text \u2022 🔊 {len(guild.voice_channels)} voice"
                f" \u2022 📁 {len(guild.categories)} categories"
            ),
            inline=False,
        )
        embed.add_field(name="Roles", value=str(len(guild.roles)), inline=True)
        embed.add_field(name="Emojis", value=str(len(guild.emojis)), inline=True)
        embed.add_field(name="Boost Level", value=f"Level {guild.premium_tier}", inline=True)
        embed.set_footer(text=f"Server ID: {guild.id}")
        await ctx.respond(embed=embed)


def setup(discord_bot_instance, services=None):
    """Register the general cog with the bot."""
    discord_bot_instance.add_cog(GeneralCog(discord_bot_instance, services))
