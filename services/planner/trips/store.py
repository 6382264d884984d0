"""
TripStore — the in-memory source of truth.

Holds trips by id, the latest weather per canonical location, and the time
of the last mutation. The store is an explicitly constructed instance handed
to TripService / WeatherService; nothing reaches it through module globals.

Persistence is a best-effort mirror: see storage.persistence.
"""

from __future__ import annotations

from datetime import datetime

from services.planner.clock import Clock, utc_now
from services.planner.trips.models import Trip
from services.planner.weather.models import WeatherData


class TripStore:
    def __init__(
        self,
        trips: dict[str, Trip] | None = None,
        weather: dict[str, WeatherData] | None = None,
        last_sync: datetime | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._clock = clock
        self.trips: dict[str, Trip] = dict(trips or {})
        self.weather: dict[str, WeatherData] = dict(weather or {})
        self.last_sync: datetime = last_sync or clock()

    def _touch(self) -> None:
        self.last_sync = self._clock()

    # -- trips --------------------------------------------------------------

    def add_trip(self, trip: Trip) -> None:
        if trip.id in self.trips:
            raise KeyError(f"duplicate trip id: {trip.id}")
        self.trips[trip.id] = trip
        self._touch()

    def update_trip(self, trip: Trip) -> None:
        if trip.id not in self.trips:
            raise KeyError(trip.id)
        self.trips[trip.id] = trip
        self._touch()

    def remove_trip(self, trip_id: str) -> bool:
        removed = self.trips.pop(trip_id, None) is not None
        if removed:
            self._touch()
        return removed

    def get_trip(self, trip_id: str) -> Trip | None:
        return self.trips.get(trip_id)

    def all_trips(self) -> list[Trip]:
        return list(self.trips.values())

    # -- weather ------------------------------------------------------------

    def put_weather(self, location: str, data: WeatherData) -> None:
        self.weather[location] = data
        self._touch()

    def get_weather(self, location: str) -> WeatherData | None:
        return self.weather.get(location)

    def remove_weather(self, location: str) -> bool:
        removed = self.weather.pop(location, None) is not None
        if removed:
            self._touch()
        return removed

    # -- whole store --------------------------------------------------------

    def clear(self) -> None:
        self.trips.clear()
        self.weather.clear()
        self._touch()

    def replace(self, other: TripStore) -> None:
        """Adopt another store's contents (e.g. after a restore)."""
        self.trips = dict(other.trips)
        self.weather = dict(other.weather)
        self.last_sync = other.last_sync
