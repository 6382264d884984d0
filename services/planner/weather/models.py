"""
Weather value types.

WeatherData is immutable: every refresh builds a new instance. CacheEntry is
the explicit record the cache stores per canonical location key.

Wire format (to_dict / from_dict) uses camelCase keys and ISO-8601 dates so
the same shape is served by the API and written to the persisted store:

    {
      "location": "Paris",
      "current": {"temperature": 18, "description": "Sunny", "humidity": 55,
                  "windSpeed": 12, "icon": "//cdn.weatherapi.com/..."},
      "forecast": [{"date": "2026-10-19", "temperature": {"min": 9, "max": 19},
                    "description": "Cloudy", "humidity": 61, "windSpeed": 0,
                    "icon": "..."}],
      "lastUpdated": "2026-10-19T12:00:00Z"
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from services.planner.clock import parse_datetime, to_iso


@dataclass(frozen=True)
class CurrentConditions:
    temperature: float
    description: str
    humidity: float
    wind_speed: float
    icon: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "description": self.description,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CurrentConditions:
        return cls(
            temperature=raw["temperature"],
            description=raw["description"],
            humidity=raw["humidity"],
            wind_speed=raw["windSpeed"],
            icon=raw["icon"],
        )


@dataclass(frozen=True)
class ForecastDay:
    date: date
    min_temperature: float
    max_temperature: float
    description: str
    humidity: float
    wind_speed: float
    icon: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "temperature": {"min": self.min_temperature, "max": self.max_temperature},
            "description": self.description,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ForecastDay:
        # Older stores wrote full timestamps for forecast days
        parsed = parse_datetime(raw["date"])
        if parsed is None:
            raise ValueError(f"invalid forecast date: {raw['date']!r}")
        return cls(
            date=parsed.date(),
            min_temperature=raw["temperature"]["min"],
            max_temperature=raw["temperature"]["max"],
            description=raw["description"],
            humidity=raw["humidity"],
            wind_speed=raw.get("windSpeed", 0),
            icon=raw["icon"],
        )


@dataclass(frozen=True)
class WeatherData:
    location: str
    current: CurrentConditions
    forecast: tuple[ForecastDay, ...]
    last_updated: datetime

    def with_forecast(self, forecast: tuple[ForecastDay, ...]) -> WeatherData:
        return replace(self, forecast=tuple(forecast))

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "current": self.current.to_dict(),
            "forecast": [day.to_dict() for day in self.forecast],
            "lastUpdated": to_iso(self.last_updated),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> WeatherData:
        last_updated = parse_datetime(raw["lastUpdated"])
        if last_updated is None:
            raise ValueError(f"invalid lastUpdated: {raw['lastUpdated']!r}")
        return cls(
            location=raw["location"],
            current=CurrentConditions.from_dict(raw["current"]),
            forecast=tuple(ForecastDay.from_dict(day) for day in raw.get("forecast", [])),
            last_updated=last_updated,
        )


@dataclass(frozen=True)
class CacheEntry:
    """A cached lookup: the data, when it was captured, and its canonical key."""

    data: WeatherData
    timestamp: datetime
    location: str

    def age_seconds(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds()


@dataclass
class CacheStats:
    count: int
    locations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "locations": list(self.locations)}
