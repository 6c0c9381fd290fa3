"""Process-wide settings read from ``config/app_config.yml``.

Per-guild moderation settings live in the database (see
:mod:`serversense.configuration.guild_policy`); this file only covers what
applies to the whole bot: the database location, the AI endpoint and the
judgment cache.
"""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from serversense.configuration.ai_settings import AISettings
from serversense.util.logger import get_logger

logger = get_logger("app_configuration")

CONFIG_PATH = Path(os.getenv("SERVERSENSE_CONFIG", "./config/app_config.yml")).resolve()

DEFAULT_DATABASE_PATH = "./data/serversense.db"
DEFAULT_CACHE_TTL_SECONDS = 60.0
DEFAULT_CACHE_SOFT_CAPACITY = 1000


def read_yaml_mapping(path: Path) -> Dict[str, Any]:
    """Parse ``path`` under a shared file lock.

    Anything other than a YAML mapping at the top level (a missing file,
    a syntax error, a bare list) yields an empty dict and an error log.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
            try:
                loaded = yaml.safe_load(handle)
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except FileNotFoundError:
        logger.error("[APP CONFIGURATION] %s does not exist, falling back to defaults", path)
        return {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("[APP CONFIGURATION] Could not read %s: %s", path, exc)
        return {}

    if not isinstance(loaded, dict):
        if loaded is not None:
            logger.error("[APP CONFIGURATION] %s must contain a mapping, got %s", path, type(loaded).__name__)
        return {}
    return loaded


class AppConfig:
    """Cached view of the YAML configuration file.

    ``reload()`` re-reads the file; the typed properties below fall back to
    defaults for anything missing or malformed.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> Dict[str, Any]:
        self._data = read_yaml_mapping(self.config_path)
        logger.debug("[APP CONFIGURATION] Loaded %d top-level keys from %s", len(self._data), self.config_path)
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """The raw mapping. Treat as read-only."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def _section(self, name: str) -> Dict[str, Any]:
        value = self._data.get(name)
        return value if isinstance(value, dict) else {}

    @property
    def ai_settings(self) -> AISettings:
        return AISettings(self._section("ai_settings"))

    @property
    def judgment_cache_ttl(self) -> float:
        """How long, in seconds, an AI verdict is reused for identical text."""
        return float(self._section("judgment_cache").get("ttl_seconds", DEFAULT_CACHE_TTL_SECONDS))

    @property
    def judgment_cache_capacity(self) -> int:
        """Size at which the cache sweeps expired entries on insert."""
        return int(self._section("judgment_cache").get("soft_capacity", DEFAULT_CACHE_SOFT_CAPACITY))

    @property
    def database_path(self) -> Path:
        raw = self._data.get("database_path") or DEFAULT_DATABASE_PATH
        return Path(str(raw)).resolve()


app_config = AppConfig(CONFIG_PATH)
