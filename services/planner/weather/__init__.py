"""
Weather service package.

Provides cached weather lookups (30 minutes per canonical location) in front
of a rate-limited weather source, with stale data served when the source fails.
Multiple trips share weather data — the normalised location is the cache key.
"""

from services.planner.weather.cache import WeatherCache
from services.planner.weather.service import WeatherService

__all__ = ["WeatherService", "WeatherCache"]
