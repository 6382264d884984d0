"""
Trip classification relative to a reference instant.

Buckets:
  current   start_date <= now <= end_date
  upcoming  start_date >  now
  past      end_date   <  now

Display order (sort_for_display):
  current trips first, earliest start first
  then upcoming trips, earliest start first
  then past trips, most recently ended first

The predicates are evaluated independently; they are mutually exclusive as
long as start_date <= end_date holds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from services.planner.clock import as_date
from services.planner.trips.models import Trip

CURRENT = "current"
UPCOMING = "upcoming"
PAST = "past"

_BUCKET_RANK = {CURRENT: 0, UPCOMING: 1, PAST: 2}


def is_current(trip: Trip, now: datetime) -> bool:
    return trip.start_date <= now <= trip.end_date


def is_upcoming(trip: Trip, now: datetime) -> bool:
    return trip.start_date > now


def is_past(trip: Trip, now: datetime) -> bool:
    return trip.end_date < now


def bucket_for(trip: Trip, now: datetime) -> str:
    if is_upcoming(trip, now):
        return UPCOMING
    if is_past(trip, now):
        return PAST
    return CURRENT


def _display_key(trip: Trip, now: datetime) -> tuple[int, float]:
    bucket = bucket_for(trip, now)
    if bucket == PAST:
        return _BUCKET_RANK[bucket], -trip.end_date.timestamp()
    return _BUCKET_RANK[bucket], trip.start_date.timestamp()


def sort_for_display(trips: Iterable[Trip], now: datetime) -> list[Trip]:
    return sorted(trips, key=lambda trip: _display_key(trip, now))


@dataclass
class TripBuckets:
    current: list[Trip] = field(default_factory=list)
    upcoming: list[Trip] = field(default_factory=list)
    past: list[Trip] = field(default_factory=list)


def partition(trips: Iterable[Trip], now: datetime) -> TripBuckets:
    """Split trips into current / upcoming / past, each in display order."""
    buckets = TripBuckets()
    for trip in sort_for_display(trips, now):
        if is_current(trip, now):
            buckets.current.append(trip)
        if is_upcoming(trip, now):
            buckets.upcoming.append(trip)
        if is_past(trip, now):
            buckets.past.append(trip)
    return buckets


def upcoming_trips(trips: Iterable[Trip], now: datetime) -> list[Trip]:
    return partition(trips, now).upcoming


def past_trips(trips: Iterable[Trip], now: datetime) -> list[Trip]:
    return partition(trips, now).past


def current_trips(trips: Iterable[Trip], now: datetime) -> list[Trip]:
    return partition(trips, now).current


def trip_duration_days(trip: Trip) -> int:
    """Whole days spanned by the trip, rounded up. A same-instant trip is 0 days."""
    return math.ceil((trip.end_date - trip.start_date).total_seconds() / 86400)


def days_until_trip(trip: Trip, now: datetime) -> int:
    """Calendar days from today until the trip starts; negative once it has started."""
    return (as_date(trip.start_date) - as_date(now)).days
