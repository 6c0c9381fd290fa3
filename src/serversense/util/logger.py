"""
Logging setup shared by every ServerSense module.

Each module asks for ``get_logger("name")``. All of them write to the same
two handlers: a prompt_toolkit console handler (colourised when stderr is a
terminal) and a size-capped log file under ``logs/`` named after the time the
process started. Set ``SERVERSENSE_LOG_LEVEL`` to change the console level;
the file always records DEBUG.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()

LOG_FORMAT: str = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT: str = "%Y-%m-%d %H-%M-%S"

MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

_ANSI_RESET = "\033[0m"
_LEVEL_STYLES: dict[int, str] = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}

_QUIET_LIBRARIES = (
    "discord",
    "discord.client",
    "discord.gateway",
    "discord.http",
    "openai",
    "httpx",
    "httpcore",
    "aiosqlite",
    "aiohttp",
    "websockets",
)

_session_log_path: Path | None = None
_shared_handlers: list[logging.Handler] = []


class ColorFormatter(logging.Formatter):
    """Adds an ANSI colour prefix chosen from the record's level number."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        style = _LEVEL_STYLES.get(record.levelno)
        if style is None:
            return text
        return style + text + _ANSI_RESET


class PromptToolkitHandler(logging.Handler):
    """Writes records with ``print_formatted_text`` so ANSI codes render on any terminal."""

    def __init__(self, formatter: logging.Formatter | None = None, level: int = logging.NOTSET):
        super().__init__(level)
        if formatter is not None:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    """True when stderr is attached to a terminal."""
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def _console_level() -> int:
    name = os.getenv("SERVERSENSE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_log_filepath() -> Path:
    """
    Path of the log file for this process.

    Chosen once, from the start time, and reused by every logger afterwards.
    """
    global _session_log_path

    if _session_log_path is None:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        _session_log_path = LOGS_DIR / f"{datetime.now().strftime(DATE_FORMAT)}.log"
    return _session_log_path


def _build_handlers() -> list[logging.Handler]:
    plain = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console_formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain

    console = PromptToolkitHandler(formatter=console_formatter, level=_console_level())

    logfile = RotatingFileHandler(
        get_log_filepath(),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    logfile.setLevel(logging.DEBUG)
    logfile.setFormatter(plain)

    return [console, logfile]


def get_logger(logger_name: str) -> logging.Logger:
    """Return the named logger, attaching the shared handlers on first request.

    Parameters
    ----------
    logger_name:
        Short component name, for example ``"moderation_pipeline"``.
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    if not _shared_handlers:
        _shared_handlers.extend(_build_handlers())

    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in _shared_handlers:
        logger.addHandler(handler)
    return logger


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` replacement; Ctrl+C still goes to the default hook."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    get_logger("uncaught").critical(
        "Uncaught exception",
        exc_info=(exception_type, exception_instance, exception_traceback),
    )


def quiet_library_loggers() -> None:
    """Raise third-party loggers to ERROR and strip the handlers they installed."""
    for name in _QUIET_LIBRARIES:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.ERROR)
        library_logger.propagate = False
        library_logger.handlers.clear()


quiet_library_loggers()
sys.excepthook = handle_exception
