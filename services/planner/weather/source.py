"""
Weather sources — the collaborators WeatherService wraps.

Two implementations of the same contract:

  MockWeatherSource   Random but plausible data, simulated latency and a
                      configurable failure rate. Default for local dev.
  WeatherApiSource    WeatherAPI.com forecast.json over httpx.

Both return the raw WeatherAPI.com response shape:

  {
    "location": "Paris",
    "current":  {"temp_c": 18, "condition": {"text": "Sunny", "icon": "..."},
                 "humidity": 55, "wind_kph": 12},
    "forecast": {"forecastday": [
        {"date": "2026-10-19",
         "day": {"maxtemp_c": 19, "mintemp_c": 9, "avghumidity": 61,
                 "condition": {"text": "Cloudy", "icon": "..."}}},
        ...
    ]}
  }

Rate limiting is the source's own concern: a fixed window (60 s) capped at
10 requests. The window restarts once more than `window_seconds` have passed
since it last restarted, not on a fixed schedule.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import date, timedelta
from typing import Any, Callable, Protocol

import httpx

from services.planner.clock import utc_now
from services.planner.config import Settings
from services.planner.errors import (
    LocationNotFoundError,
    RateLimitedError,
    WeatherNetworkError,
    WeatherSourceError,
    WeatherTimeoutError,
)

logger = logging.getLogger(__name__)

_USER_AGENT = "TripPlanner/1.0"

# WeatherAPI.com error code for "No matching location found."
_WEATHERAPI_NO_LOCATION = 1006

_MOCK_CONDITIONS = (
    ("Sunny", "//cdn.weatherapi.com/weather/64x64/day/113.png"),
    ("Partly cloudy", "//cdn.weatherapi.com/weather/64x64/day/116.png"),
    ("Cloudy", "//cdn.weatherapi.com/weather/64x64/day/119.png"),
    ("Light rain", "//cdn.weatherapi.com/weather/64x64/day/296.png"),
)


class WeatherSource(Protocol):
    async def fetch_current_and_forecast(self, location: str) -> dict[str, Any]:
        ...


class FixedWindowRateLimiter:
    """Allow `max_requests` calls per window; raise RateLimitedError beyond that."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._count = 0
        self._window_start: float | None = None

    @property
    def remaining(self) -> int:
        return max(0, self.max_requests - self._count)

    def acquire(self, location: str | None = None) -> None:
        now = self._clock()
        if self._window_start is None or now - self._window_start > self.window_seconds:
            self._count = 0
            self._window_start = now

        if self._count >= self.max_requests:
            retry_after = self.window_seconds - (now - self._window_start)
            raise RateLimitedError(retry_after, location=location)

        self._count += 1


class MockWeatherSource:
    """
    Generates plausible weather for any location.

    Usage:
        source = MockWeatherSource(failure_rate=0.0, min_latency_s=0, max_latency_s=0)
        raw = await source.fetch_current_and_forecast("Lisbon")
    """

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter | None = None,
        forecast_days: int = 5,
        failure_rate: float = 0.1,
        min_latency_s: float = 0.5,
        max_latency_s: float = 1.5,
        rng: random.Random | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter()
        self._forecast_days = forecast_days
        self._failure_rate = failure_rate
        self._min_latency_s = min_latency_s
        self._max_latency_s = max(min_latency_s, max_latency_s)
        self._rng = rng or random.Random()
        self._today = today or (lambda: utc_now().date())

    async def fetch_current_and_forecast(self, location: str) -> dict[str, Any]:
        self._rate_limiter.acquire(location)

        if self._max_latency_s > 0:
            await asyncio.sleep(self._rng.uniform(self._min_latency_s, self._max_latency_s))

        if self._rng.random() < self._failure_rate:
            raise WeatherSourceError("Weather service temporarily unavailable", location=location)

        return self._generate(location)

    def _generate(self, location: str) -> dict[str, Any]:
        rng = self._rng
        current_temp = rng.randint(5, 34)
        text, icon = rng.choice(_MOCK_CONDITIONS)
        start = self._today()

        forecast_days = []
        for offset in range(self._forecast_days):
            day_text, day_icon = rng.choice(_MOCK_CONDITIONS)
            forecast_days.append({
                "date": (start + timedelta(days=offset)).isoformat(),
                "day": {
                    "maxtemp_c": current_temp + rng.randint(-5, 4),
                    "mintemp_c": current_temp - rng.randint(5, 19),
                    "condition": {"text": day_text, "icon": day_icon},
                    "avghumidity": rng.randint(40, 79),
                },
            })

        return {
            "location": location,
            "current": {
                "temp_c": current_temp,
                "condition": {"text": text, "icon": icon},
                "humidity": rng.randint(40, 79),
                "wind_kph": rng.randint(5, 24),
            },
            "forecast": {"forecastday": forecast_days},
        }


class WeatherApiSource:
    """
    WeatherAPI.com client.

    Usage:
        source = WeatherApiSource(api_key="...")
        raw = await source.fetch_current_and_forecast("Tokyo")
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.weatherapi.com/v1",
        timeout_s: float = 10.0,
        forecast_days: int = 5,
        rate_limiter: FixedWindowRateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            api_key:   WeatherAPI.com key (WEATHER_API_KEY env var).
            transport: Optional httpx transport, used by tests to stub responses.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._forecast_days = forecast_days
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter()
        self._transport = transport

    async def fetch_current_and_forecast(self, location: str) -> dict[str, Any]:
        self._rate_limiter.acquire(location)

        if not self._api_key:
            raise WeatherSourceError("Weather API key not configured", location=location)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                resp = await client.get(
                    f"{self._base_url}/forecast.json",
                    params={
                        "key": self._api_key,
                        "q": location,
                        "days": self._forecast_days,
                        "aqi": "no",
                        "alerts": "no",
                    },
                    headers={"Accept": "application/json", "User-Agent": _USER_AGENT},
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("Weather API timed out for location=%r", location)
            raise WeatherTimeoutError("Weather request timed out. Please try again.", location=location) from exc
        except httpx.HTTPStatusError as exc:
            raise _status_error(exc, location) from exc
        except httpx.TransportError as exc:
            logger.warning("Weather API unreachable for location=%r: %s", location, exc)
            raise WeatherNetworkError(f"Network error while fetching weather data: {exc}", location=location) from exc
        except ValueError as exc:
            raise WeatherSourceError(f"Weather API returned invalid JSON: {exc}", location=location) from exc

        return _flatten_location(payload, location)


def _status_error(exc: httpx.HTTPStatusError, location: str) -> WeatherSourceError:
    status = exc.response.status_code
    logger.warning(
        "Weather API returned %d for location=%r: %s",
        status,
        location,
        exc.response.text[:200],
    )
    error_code = None
    try:
        error_code = exc.response.json().get("error", {}).get("code")
    except ValueError:
        pass

    if status == 404 or error_code == _WEATHERAPI_NO_LOCATION:
        return LocationNotFoundError(f"Location not found: {location}", location=location)
    if status == 429:
        retry_after = exc.response.headers.get("retry-after", "60")
        try:
            return RateLimitedError(float(retry_after), location=location)
        except ValueError:
            return RateLimitedError(60, location=location)
    return WeatherSourceError(f"Weather API error: {status}", location=location)


def _flatten_location(payload: dict[str, Any], requested: str) -> dict[str, Any]:
    """WeatherAPI.com nests the resolved place name; the rest of the service expects a string."""
    loc = payload.get("location")
    if isinstance(loc, dict):
        payload = {**payload, "location": loc.get("name") or requested}
    elif not loc:
        payload = {**payload, "location": requested}
    return payload


def build_weather_source(settings: Settings) -> WeatherSource:
    """Pick the mock or real source based on configuration."""
    rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.weather_rate_limit_requests,
        window_seconds=settings.weather_rate_limit_window_s,
    )
    if settings.weather_use_mock:
        logger.info("Using mock weather source")
        return MockWeatherSource(
            rate_limiter=rate_limiter,
            forecast_days=settings.weather_forecast_days,
            failure_rate=settings.weather_mock_failure_rate,
            min_latency_s=settings.weather_mock_min_latency_s,
            max_latency_s=settings.weather_mock_max_latency_s,
        )
    return WeatherApiSource(
        api_key=settings.weather_api_key,
        base_url=settings.weather_api_base_url,
        timeout_s=settings.weather_api_timeout_s,
        forecast_days=settings.weather_forecast_days,
        rate_limiter=rate_limiter,
    )
