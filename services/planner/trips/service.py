"""
TripService — CRUD orchestration over TripStore + persistence.

Lifecycle per trip:  nonexistent -> active (create) -> active (update) -> deleted

Every mutation validates, applies to the in-memory store, then awaits a full
save of the store before returning. If the save fails the PersistenceError
propagates and the in-memory change stays applied: memory and disk can
diverge until the next successful save.

Reads are pure queries over the store and never touch persistence.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any

from services.planner.clock import Clock, utc_now
from services.planner.errors import NotFoundError, ValidationError
from services.planner.storage.persistence import Persistence
from services.planner.trips import classifier
from services.planner.trips.models import Trip
from services.planner.trips.store import TripStore
from services.planner.trips.validation import validate_create, validate_trip_id, validate_update

logger = logging.getLogger(__name__)


def _generate_id() -> str:
    return str(uuid.uuid4())


class TripService:
    """
    Usage:
        service = TripService(store=TripStore(), persistence=FilePersistence("data"))
        trip = await service.create_trip({"name": "Spring break", "destination": "Lisbon",
                                          "startDate": "2026-04-01", "endDate": "2026-04-08"})
        upcoming = service.get_upcoming_trips()
    """

    def __init__(self, store: TripStore, persistence: Persistence, clock: Clock = utc_now) -> None:
        self._store = store
        self._persistence = persistence
        self._clock = clock

    @property
    def store(self) -> TripStore:
        return self._store

    def now(self) -> datetime:
        """The reference instant used for bucketing."""
        return self._clock()

    # -- mutations ----------------------------------------------------------

    async def create_trip(self, data: Mapping[str, Any]) -> Trip:
        draft = validate_create(data)
        now = self._clock()
        trip = Trip(
            id=_generate_id(),
            name=draft.name,
            destination=draft.destination,
            start_date=draft.start_date,
            end_date=draft.end_date,
            created_at=now,
            updated_at=now,
        )
        self._store.add_trip(trip)
        await self._persistence.save(self._store)
        logger.info("Trip created: id=%s destination=%r", trip.id, trip.destination)
        return trip

    async def update_trip(self, trip_id: str, data: Mapping[str, Any]) -> Trip:
        trip_id = validate_trip_id(trip_id)
        existing = self._store.get_trip(trip_id)
        if existing is None:
            raise NotFoundError(trip_id)

        patch = validate_update(data, existing=existing)
        updated = replace(existing, **patch, updated_at=self._clock())
        self._store.update_trip(updated)
        await self._persistence.save(self._store)
        logger.info("Trip updated: id=%s fields=%s", trip_id, sorted(patch))
        return updated

    async def delete_trip(self, trip_id: str) -> bool:
        trip_id = validate_trip_id(trip_id)
        if not self._store.remove_trip(trip_id):
            raise NotFoundError(trip_id)
        await self._persistence.save(self._store)
        logger.info("Trip deleted: id=%s", trip_id)
        return True

    # -- queries ------------------------------------------------------------

    def get_all_trips(self, now: datetime | None = None) -> list[Trip]:
        return classifier.sort_for_display(self._store.all_trips(), now or self._clock())

    def get_trip(self, trip_id: str) -> Trip:
        trip_id = validate_trip_id(trip_id)
        trip = self._store.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(trip_id)
        return trip

    def get_trips_by_destination(self, query: str) -> list[Trip]:
        if not query or not query.strip():
            raise ValidationError(["Destination cannot be empty"])
        needle = query.strip().lower()
        return [trip for trip in self._store.all_trips() if needle in trip.destination.lower()]

    def get_upcoming_trips(self, now: datetime | None = None) -> list[Trip]:
        return classifier.upcoming_trips(self._store.all_trips(), now or self._clock())

    def get_past_trips(self, now: datetime | None = None) -> list[Trip]:
        return classifier.past_trips(self._store.all_trips(), now or self._clock())

    def get_current_trips(self, now: datetime | None = None) -> list[Trip]:
        return classifier.current_trips(self._store.all_trips(), now or self._clock())

    def get_dashboard(self, now: datetime | None = None) -> classifier.TripBuckets:
        return classifier.partition(self._store.all_trips(), now or self._clock())
