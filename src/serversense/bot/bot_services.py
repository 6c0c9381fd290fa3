"""
Shared service graph for the running bot.

Everything the cogs need is built once here and handed to each cog's
``setup`` function, so cogs never construct collaborators themselves.
"""

from __future__ import annotations

from dataclasses import dataclass

import discord

from serversense.ai.ai_judge import AIJudge
from serversense.ai.assistant import AssistantClient
from serversense.bot.discord_transport import DiscordTransport
from serversense.configuration.app_configuration import AppConfig
from serversense.database.database import Database
from serversense.moderation.decision_engine import DecisionEngine
from serversense.moderation.enforcement import EnforcementCoordinator
from serversense.moderation.judgment_cache import JudgmentCache
from serversense.moderation.moderation_pipeline import ModerationPipeline
from serversense.util.logger import get_logger

logger = get_logger("bot_services")


@dataclass(slots=True)
class BotServices:
    database: Database
    cache: JudgmentCache
    judge: AIJudge
    enforcement: EnforcementCoordinator
    pipeline: ModerationPipeline
    assistant: AssistantClient


def build_services(discord_bot_instance: discord.Bot, database: Database, config: AppConfig) -> BotServices:
    """Construct the moderation pipeline and assistant around ``database``."""
    cache = JudgmentCache(
        ttl_seconds=config.judgment_cache_ttl,
        soft_capacity=config.judgment_cache_capacity,
    )
    ai_settings = config.ai_settings
    judge = AIJudge(cache, settings=ai_settings)
    enforcement = EnforcementCoordinator(DiscordTransport(discord_bot_instance), database)
    pipeline = ModerationPipeline(database, DecisionEngine(judge), enforcement)
    assistant = AssistantClient(settings=ai_settings)

    logger.info(
        "[BOT SERVICES] Pipeline ready (model=%s, cache ttl=%.0fs, capacity=%d)",
        ai_settings.model_name,
        cache.ttl_seconds,
        cache.soft_capacity,
    )
    return BotServices(
        database=database,
        cache=cache,
        judge=judge,
        enforcement=enforcement,
        pipeline=pipeline,
        assistant=assistant,
    )
