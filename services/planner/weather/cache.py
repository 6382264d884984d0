"""
Weather cache — in-process, keyed per canonical location.

Cache key:   location.strip().lower()
TTL:         1800 seconds (30 minutes), measured from capture time

"Paris", " paris " and "PARIS" all share one entry. Reads never extend an
entry's lifetime; an entry is fresh iff now - entry.timestamp < ttl.

Expired entries are not dropped on read. They stay around as a fallback for
WeatherService when the source is failing, until clear(), clear_expired()
or the opportunistic sweep that runs after a put() once the map grows past
`sweep_threshold` entries.
"""

from __future__ import annotations

import logging
from datetime import datetime

from services.planner.clock import Clock, utc_now
from services.planner.weather.models import CacheEntry, CacheStats, WeatherData

logger = logging.getLogger(__name__)

_TTL_SECONDS = 30 * 60
_SWEEP_THRESHOLD = 10


def _cache_key(location: str) -> str:
    """Canonical location key used for cache identity."""
    return location.strip().lower()


class WeatherCache:
    """
    In-memory weather cache.

    Usage:
        cache = WeatherCache()
        entry = cache.get_fresh("Tokyo")
        if entry is None:
            data = await fetch_from_source(...)
            cache.put("Tokyo", data)
    """

    def __init__(
        self,
        ttl_seconds: float = _TTL_SECONDS,
        sweep_threshold: int = _SWEEP_THRESHOLD,
        clock: Clock = utc_now,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._sweep_threshold = sweep_threshold
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def __len__(self) -> int:
        return len(self._entries)

    def is_fresh(self, entry: CacheEntry, now: datetime | None = None) -> bool:
        now = now or self._clock()
        return entry.age_seconds(now) < self._ttl_seconds

    def get_entry(self, location: str) -> CacheEntry | None:
        """Return the entry for location regardless of freshness."""
        return self._entries.get(_cache_key(location))

    def get_fresh(self, location: str) -> CacheEntry | None:
        """Return the entry for location only if it is still fresh."""
        key = _cache_key(location)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Weather cache miss: %s", key)
            return None
        if not self.is_fresh(entry):
            logger.debug("Weather cache expired: %s", key)
            return None
        logger.debug("Weather cache hit: %s", key)
        return entry

    def put(
        self,
        location: str,
        data: WeatherData,
        captured_at: datetime | None = None,
        sweep: bool = True,
    ) -> CacheEntry:
        """Store data under the canonical key, replacing any previous entry."""
        key = _cache_key(location)
        entry = CacheEntry(data=data, timestamp=captured_at or self._clock(), location=key)
        self._entries[key] = entry
        logger.debug("Weather cached: key=%s ttl=%ds", key, self._ttl_seconds)

        if sweep and len(self._entries) > self._sweep_threshold:
            self.clear_expired()
        return entry

    def invalidate(self, location: str) -> bool:
        """Force-evict a single location. Returns True if an entry was removed."""
        return self._entries.pop(_cache_key(location), None) is not None

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Weather cache cleared")

    def clear_expired(self) -> int:
        """Drop every entry that is no longer fresh. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self.is_fresh(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("Expired weather cache entries cleared: %d", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        return CacheStats(
            count=len(self._entries),
            locations=[entry.location for entry in self._entries.values()],
        )
