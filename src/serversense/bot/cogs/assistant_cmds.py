"""
Assistant cog: ``/chat`` and ``/clearhistory``.

Conversation history is kept per (guild, channel, user) in the database. Only
the most recent exchanges are sent to the model, and the stored thread is
pruned after each reply.
"""

import discord
from discord import Option
from discord.ext import commands

from serversense.ai.assistant import HISTORY_TURNS, MAX_STORED_TURNS, AssistantUnavailable
from serversense.util.logger import get_logger

logger = get_logger("assistant_cog")


class AssistantCog(commands.Cog):
    """Cog exposing the chat assistant."""

    def __init__(self, discord_bot_instance, services):
        self.discord_bot_instance = discord_bot_instance
        self.assistant = services.assistant
        self.database = services.database
        logger.info("Assistant cog loaded")

    @commands.slash_command(name="chat", description="Chat with the ServerSense AI assistant")
    async def chat(
        self,
        ctx: discord.ApplicationContext,
        prompt: Option(str, "What do you want to ask?", required=True),  # type: ignore
    ):
        await ctx.defer()
        guild_id = ctx.guild_id or 0
        history = await self.database.get_conversation(guild_id, ctx.channel_id, ctx.user.id, limit=HISTORY_TURNS)

        try:
            reply = await self.assistant.reply(prompt, history, user_name=ctx.user.display_name)
        except AssistantUnavailable as exc:
            await ctx.followup.send(f"❌ {exc}")
            return

        await self.database.append_conversation(
            guild_id,
            ctx.channel_id,
            ctx.user.id,
            [{"role": "user", "content": prompt}, {"role": "assistant", "content": reply}],
            max_stored=MAX_STORED_TURNS,
        )
        await ctx.followup.send(reply)

    @commands.slash_command(name="clearhistory", description="Forget your conversation with the assistant in this channel")
    async def clearhistory(self, ctx: discord.ApplicationContext):
        await self.database.clear_conversation(ctx.guild_id or 0, ctx.channel_id, ctx.user.id)
        await ctx.respond("🧹 Your conversation history in this channel has been cleared.", ephemeral=True)


def setup(discord_bot_instance, services):
    """Register the assistant cog with the bot."""
    discord_bot_instance.add_cog(AssistantCog(discord_bot_instance, services))
