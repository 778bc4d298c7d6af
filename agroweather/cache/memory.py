"""In-memory weather cache with TTL and lazy size-triggered purging."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional

from agroweather.cache.base import CacheEntry, CacheKey, CachePayload, WeatherCache
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/in_memory_weather_cache")


class InMemoryWeatherCache(WeatherCache):
    """Thread-safe, TTL-aware in-memory cache.

    Expired entries are skipped on read but stay in the map until a write pushes
    the size past `max_entries`; only then are expired entries purged. Fresh
    entries are never dropped to make room, so the map may exceed the limit
    while everything in it is still fresh.
    """

    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.monotonic) -> None:
        logger.debug("Initializing InMemoryWeatherCache", extra={"max_entries": max_entries})
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Number of stored entries, expired ones included."""
        with self._lock:
            return len(self._entries)

    def get(self, key: CacheKey) -> Optional[CachePayload]:
        """Fresh payload for the key, or None."""
        with self._lock:
            entry = self._entries.get(str(key))
            if entry is None or not entry.is_fresh(self._clock()):
                logger.debug("Cache miss", extra={"key": str(key)})
                return None
            logger.debug("Cache hit", extra={"key": str(key)})
            return entry.payload

    def set(self, key: CacheKey, payload: CachePayload, ttl_seconds: float) -> None:
        """Store a payload and purge expired entries once the map is over size."""
        with self._lock:
            now = self._clock()
            self._entries[str(key)] = CacheEntry(str(key), payload, written_at=now, ttl_seconds=ttl_seconds)
            if len(self._entries) > self.max_entries:
                self._purge_expired(now)

    def _purge_expired(self, now: float) -> None:
        """Drop expired entries; caller holds the lock."""
        stale = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for k in stale:
            del self._entries[k]
        logger.debug("Purged expired cache entries", extra={"purged": len(stale), "remaining": len(self._entries)})

    def evict(self, key: CacheKey) -> None:
        """Drop one entry if present."""
        with self._lock:
            self._entries.pop(str(key), None)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()
