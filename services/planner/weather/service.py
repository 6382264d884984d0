"""
WeatherService — cached weather lookups with stale fallback.

Cache strategy: per canonical location (WeatherCache, 30 minute TTL), so
every trip to the same destination shares one source call per half hour.

  - Fresh entry:   returned immediately, the source is not called
  - Miss / stale:  call the source, transform, replace the entry, return
  - Source fails:  serve the stale entry unchanged if there is one (its
                   timestamp is NOT refreshed), else raise
                   WeatherUnavailableError wrapping the source error.
                   A response that cannot be transformed counts as a
                   failure too.

The store mirror (store.weather) holds exactly the keys the cache holds;
clearing or sweeping the cache drops the mirrored records as well.

get_weather_for_location() may hand back stale data; has_cached_weather()
and get_cached_weather() never do. The former is the resilience path, the
latter are freshness probes for UI decisions like showing a refresh button.

Stale fallback has no age ceiling unless `max_stale_seconds` is set.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from services.planner.clock import Clock, as_date, utc_now
from services.planner.errors import InvalidInputError, WeatherSourceError, WeatherUnavailableError
from services.planner.weather.cache import WeatherCache
from services.planner.weather.models import CacheStats, CurrentConditions, ForecastDay, WeatherData
from services.planner.weather.source import WeatherSource

if TYPE_CHECKING:
    from services.planner.trips.store import TripStore

logger = logging.getLogger(__name__)


def _transform_response(raw: dict[str, Any], now: datetime) -> WeatherData:
    """Build WeatherData from a raw WeatherAPI.com-shaped response."""
    current_raw = raw["current"]
    current = CurrentConditions(
        temperature=current_raw["temp_c"],
        description=current_raw["condition"]["text"],
        humidity=current_raw["humidity"],
        wind_speed=current_raw["wind_kph"],
        icon=current_raw["condition"]["icon"],
    )

    forecast = []
    for day in raw.get("forecast", {}).get("forecastday", []):
        summary = day["day"]
        forecast.append(ForecastDay(
            date=date.fromisoformat(day["date"]),
            min_temperature=summary["mintemp_c"],
            max_temperature=summary["maxtemp_c"],
            description=summary["condition"]["text"],
            humidity=summary["avghumidity"],
            wind_speed=summary.get("maxwind_kph", 0),
            icon=summary["condition"]["icon"],
        ))

    return WeatherData(
        location=raw["location"],
        current=current,
        forecast=tuple(forecast),
        last_updated=now,
    )


def filter_forecast_for_trip(
    data: WeatherData,
    start: date | datetime,
    end: date | datetime,
) -> WeatherData:
    """
    Narrow the forecast to days inside [start, end], compared as calendar dates.

    If nothing falls inside the range (trip beyond the forecast horizon), the
    original unfiltered forecast is returned rather than an empty one.
    """
    first, last = as_date(start), as_date(end)
    relevant = tuple(day for day in data.forecast if first <= day.date <= last)
    if relevant:
        return data.with_forecast(relevant)
    return data


class WeatherService:
    """
    Weather lookups backed by a WeatherSource and an in-memory WeatherCache.

    Usage:
        service = WeatherService(source=MockWeatherSource(), cache=WeatherCache())
        data = await service.get_weather_for_location("Tokyo")
        trip_data = await service.get_weather_for_trip("Tokyo", start, end)
    """

    def __init__(
        self,
        source: WeatherSource,
        cache: WeatherCache | None = None,
        store: TripStore | None = None,
        max_stale_seconds: float | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            source:            Where fresh data comes from.
            cache:             Entry map; a default 30 minute cache if omitted.
            store:             When given, successful refreshes are mirrored into
                               store.weather so they are persisted with the trips.
            max_stale_seconds: Optional ceiling on how old a fallback entry may be.
        """
        self._source = source
        self._clock = clock
        self._cache = cache or WeatherCache(clock=clock)
        self._store = store
        self._max_stale_seconds = max_stale_seconds

    @property
    def cache(self) -> WeatherCache:
        return self._cache

    async def get_weather_for_location(self, location: str) -> WeatherData:
        if not location or not location.strip():
            raise InvalidInputError("Location is required")

        fresh = self._cache.get_fresh(location)
        if fresh is not None:
            return fresh.data

        previous = self._cache.get_entry(location)

        try:
            logger.debug("Fetching weather data for %r", location)
            raw = await self._source.fetch_current_and_forecast(location)
            try:
                data = _transform_response(raw, self._clock())
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise WeatherSourceError(
                    f"Unexpected weather response for {location.strip()}: {exc!r}",
                    location=location.strip(),
                ) from exc
        except Exception as exc:
            if previous is not None and self._fallback_allowed(previous.timestamp):
                logger.warning(
                    "Using expired weather cache for %r due to source error: %s",
                    location,
                    exc,
                )
                return previous.data
            logger.warning("Weather unavailable for %r: %s", location, exc)
            raise WeatherUnavailableError(location.strip(), exc) from exc

        entry = self._cache.put(location, data)
        if self._store is not None:
            self._store.put_weather(entry.location, data)
            self._prune_store()
        return data

    async def get_weather_for_trip(
        self,
        destination: str,
        start_date: date | datetime,
        end_date: date | datetime,
    ) -> WeatherData:
        data = await self.get_weather_for_location(destination)
        return filter_forecast_for_trip(data, start_date, end_date)

    def has_cached_weather(self, location: str) -> bool:
        return self._cache.get_fresh(location) is not None

    def get_cached_weather(self, location: str) -> WeatherData | None:
        entry = self._cache.get_fresh(location)
        return entry.data if entry is not None else None

    def clear_cache(self) -> None:
        self._cache.clear()
        self._prune_store()

    def clear_expired_cache(self) -> int:
        removed = self._cache.clear_expired()
        self._prune_store()
        return removed

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def seed_from_store(self, store: TripStore) -> int:
        """
        Warm the cache from persisted weather data.

        Each record's last_updated becomes the entry's capture time, so data
        written long ago lands as stale and only serves as a fallback.
        """
        seeded = 0
        for key, data in store.weather.items():
            self._cache.put(key, data, captured_at=data.last_updated, sweep=False)
            seeded += 1
        if seeded:
            logger.info("Seeded weather cache with %d persisted locations", seeded)
        return seeded

    def _prune_store(self) -> int:
        """Drop mirrored weather records whose cache entry is gone."""
        if self._store is None:
            return 0
        dropped = [key for key in self._store.weather if self._cache.get_entry(key) is None]
        for key in dropped:
            self._store.remove_weather(key)
        if dropped:
            logger.debug("Dropped %d mirrored weather records", len(dropped))
        return len(dropped)

    def _fallback_allowed(self, captured_at: datetime) -> bool:
        if self._max_stale_seconds is None:
            return True
        age = (self._clock() - captured_at).total_seconds()
        return age <= self._max_stale_seconds
