"""
ServerSense
===========

A Discord bot that screens chat messages with fast pattern checks and an AI
judge, enforces per-server moderation policies, and provides slash commands
for manual moderation and server configuration.

Run with ``serversense`` (installed console script) or ``python -m
serversense.main``. Relative paths in ``config/app_config.yml`` are resolved
against the project home, which is ``SERVERSENSE_HOME`` when set.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Directory holding ``config/``, ``.env`` and ``data/``.

    ``SERVERSENSE_HOME`` wins; a frozen build uses the executable's folder;
    a source checkout uses the directory above ``src/``.
    """
    override = os.getenv("SERVERSENSE_HOME")
    if override:
        return Path(override).expanduser().resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.executable).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from serversense.bot.bot_services import BotServices, build_services
from serversense.configuration.app_configuration import app_config
from serversense.database.database import database
from serversense.util.logger import get_logger, handle_exception


logger = get_logger("main")

EXIT_OK = 0
EXIT_FAILURE = 1


def load_environment() -> str:
    """Read ``.env`` from the project home and return the bot token.

    Raises
    ------
    SystemExit
        When ``DISCORD_BOT_TOKEN`` is unset or empty.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = (os.getenv("DISCORD_BOT_TOKEN") or "").strip()
    if token:
        return token
    logger.critical("DISCORD_BOT_TOKEN is missing from the environment and %s", BASE_DIR / ".env")
    raise SystemExit(EXIT_FAILURE)


def build_intents() -> discord.Intents:
    """Default intents plus message content and member data, both needed to moderate chat."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, services: BotServices) -> None:
    """Attach every command and listener cog to ``discord_bot_instance``."""
    from serversense.bot.cogs import (
        assistant_cmds,
        automod_cmds,
        events_listener,
        general,
        message_listener,
        moderation_cmds,
    )

    for module in (events_listener, message_listener, automod_cmds, moderation_cmds, assistant_cmds, general):
        module.setup(discord_bot_instance, services)
        logger.debug("Registered cog module %s", module.__name__)

    logger.info("Registered %d cogs", len(discord_bot_instance.cogs))


def create_bot() -> discord.Bot:
    bot = discord.Bot(intents=build_intents())
    load_cogs(bot, build_services(bot, database, app_config))
    return bot


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Log in and block until the gateway connection ends."""
    logger.info("Logging in to Discord")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Gateway task cancelled")
    finally:
        logger.info("Gateway connection ended")


async def shutdown_runtime(bot: discord.Bot | None = None) -> None:
    """Close the gateway connection, then the database. Errors are logged, not raised."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception:
            logger.exception("Closing the Discord client failed")

    try:
        await database.shutdown()
    except Exception:
        logger.exception("Closing the database failed")

    logger.info("ServerSense stopped")


async def async_main() -> int:
    token = load_environment()

    if not await database.initialize():
        logger.critical("Database at %s could not be initialized", database.db_path)
        return EXIT_FAILURE

    if not app_config.ai_settings.enabled:
        logger.warning("AI judge disabled in config; messages are screened by pattern checks only")

    bot: discord.Bot | None = None
    try:
        bot = create_bot()
        await start_bot(bot, token)
    except discord.LoginFailure as exc:
        logger.critical("Discord rejected the bot token: %s", exc)
        return EXIT_FAILURE
    except Exception:
        logger.critical("Bot stopped on an unhandled error", exc_info=True)
        return EXIT_FAILURE
    finally:
        await shutdown_runtime(bot)

    return EXIT_OK


def _exit_code(exc: SystemExit) -> int:
    if exc.code is None:
        return EXIT_OK
    if isinstance(exc.code, int):
        return exc.code
    logger.warning("Non-integer exit status %r treated as failure", exc.code)
    return EXIT_FAILURE


def main() -> int:
    """Console entry point. Returns the process exit status."""
    logger.info("Starting ServerSense from %s", BASE_DIR)
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting")
        return EXIT_OK
    except SystemExit as exc:
        return _exit_code(exc)


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
