"""
Trip CRUD and listing endpoints.

Endpoints:
  GET    /trips                 all trips in display order
                                ?destination=  case-insensitive substring search
                                ?filter=       upcoming | past | current
  GET    /trips/dashboard       {current, upcoming, past}
  GET    /trips/{id}
  POST   /trips
  PATCH  /trips/{id}            partial update, only supplied fields are validated
  DELETE /trips/{id}
  GET    /trips/{id}/weather    forecast narrowed to the trip's dates

Request bodies accept every field as optional and untyped so that missing or
malformed values are reported together by trip validation, not one at a time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict

from services.planner.errors import InvalidInputError
from services.planner.routers._deps import envelope, get_trip_service, get_weather_service
from services.planner.trips import classifier
from services.planner.trips.models import Trip
from services.planner.trips.service import TripService
from services.planner.weather.service import WeatherService

router = APIRouter(prefix="/trips", tags=["trips"])

_FILTERS = {"upcoming", "past", "current"}


class TripCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Any = None
    destination: Any = None
    startDate: Any = None
    endDate: Any = None


class TripUpdateRequest(TripCreateRequest):
    """Same fields; only the ones present in the body are applied."""


def _trip_payload(trip: Trip, now: datetime) -> dict:
    payload = trip.to_dict()
    payload["status"] = classifier.bucket_for(trip, now)
    payload["durationDays"] = classifier.trip_duration_days(trip)
    payload["daysUntil"] = classifier.days_until_trip(trip, now)
    return payload


@router.get("")
async def list_trips(
    request: Request,
    destination: str | None = Query(default=None),
    filter: str | None = Query(default=None),
    service: TripService = Depends(get_trip_service),
) -> dict:
    now = service.now()
    if destination is not None:
        trips = service.get_trips_by_destination(destination)
    elif filter is not None:
        if filter not in _FILTERS:
            raise InvalidInputError(f"Invalid filter {filter!r}; expected one of upcoming, past, current")
        trips = {
            "upcoming": service.get_upcoming_trips,
            "past": service.get_past_trips,
            "current": service.get_current_trips,
        }[filter](now)
    else:
        trips = service.get_all_trips(now)

    return envelope(request, {
        "trips": [_trip_payload(trip, now) for trip in trips],
        "count": len(trips),
    })


@router.get("/dashboard")
async def trip_dashboard(
    request: Request,
    service: TripService = Depends(get_trip_service),
) -> dict:
    now = service.now()
    buckets = service.get_dashboard(now)
    return envelope(request, {
        "current": [_trip_payload(trip, now) for trip in buckets.current],
        "upcoming": [_trip_payload(trip, now) for trip in buckets.upcoming],
        "past": [_trip_payload(trip, now) for trip in buckets.past],
    })


@router.get("/{trip_id}")
async def get_trip(
    trip_id: str,
    request: Request,
    service: TripService = Depends(get_trip_service),
) -> dict:
    trip = service.get_trip(trip_id)
    return envelope(request, {"trip": _trip_payload(trip, service.now())})


@router.post("", status_code=201)
async def create_trip(
    body: TripCreateRequest,
    request: Request,
    service: TripService = Depends(get_trip_service),
) -> dict:
    trip = await service.create_trip(body.model_dump())
    return envelope(request, {"trip": _trip_payload(trip, service.now())})


@router.patch("/{trip_id}")
async def update_trip(
    trip_id: str,
    body: TripUpdateRequest,
    request: Request,
    service: TripService = Depends(get_trip_service),
) -> dict:
    trip = await service.update_trip(trip_id, body.model_dump(exclude_unset=True))
    return envelope(request, {"trip": _trip_payload(trip, service.now())})


@router.delete("/{trip_id}")
async def delete_trip(
    trip_id: str,
    request: Request,
    service: TripService = Depends(get_trip_service),
) -> dict:
    deleted = await service.delete_trip(trip_id)
    return envelope(request, {"deleted": deleted})


@router.get("/{trip_id}/weather")
async def trip_weather(
    trip_id: str,
    request: Request,
    trips: TripService = Depends(get_trip_service),
    weather: WeatherService = Depends(get_weather_service),
) -> dict:
    trip = trips.get_trip(trip_id)
    data = await weather.get_weather_for_trip(trip.destination, trip.start_date, trip.end_date)
    return envelope(request, {"weather": data.to_dict()})
