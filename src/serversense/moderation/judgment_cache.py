"""
Short-lived cache of AI judgments keyed by normalized message text.

Entries expire ``ttl_seconds`` after insertion. The cache is soft-capped:
whenever an insert pushes the entry count above ``soft_capacity`` every
expired entry is swept, so the size can exceed the cap while all entries are
still fresh. Keys are not scoped by guild.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from serversense.datatypes.moderation_datatypes import Judgment
from serversense.util.logger import get_logger

logger = get_logger("judgment_cache")

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_SOFT_CAPACITY = 1000


@dataclass(frozen=True, slots=True)
class CacheEntry:
    judgment: Judgment
    expires_at: float


def cache_key(text: str) -> str:
    """Normalize message text into a cache key (trimmed, lower-cased)."""
    return text.strip().lower()


class JudgmentCache:
    """In-memory TTL cache for :class:`Judgment` values.

    Only touched from the event loop thread, so no locking is needed.

    Args:
        ttl_seconds: Lifetime of an entry from insertion.
        soft_capacity: Entry count above which expired entries are swept.
        clock: Monotonic time source in seconds, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        soft_capacity: int = DEFAULT_SOFT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self.soft_capacity = int(soft_capacity)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Judgment]:
        """Return the cached judgment for ``key`` if it has not expired."""
        normalized = cache_key(key)
        entry = self._entries.get(normalized)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[normalized]
            return None
        return entry.judgment

    def put(self, key: str, judgment: Judgment) -> None:
        """Store ``judgment`` under ``key``, replacing any previous entry."""
        now = self._clock()
        self._entries[cache_key(key)] = CacheEntry(judgment, now + self.ttl_seconds)
        if len(self._entries) > self.soft_capacity:
            self._sweep(now)

    def clear(self) -> None:
        self._entries.clear()

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("[JUDGMENT CACHE] Swept %d expired entries (%d remain)", len(expired), len(self._entries))
