"""
Weather lookup and cache management endpoints.

Endpoints:
  GET    /weather?location=..[&startDate=..&endDate=..]  dates come as a pair
  GET    /weather/cache                 {count, locations}
  GET    /weather/cache/check?location= {hasCached, cachedData}; never fetches
  DELETE /weather/cache
  DELETE /weather/cache/expired

Source failures without a cached fallback map to 429 (rate limit),
503 (network / timeout), 404 (unknown location) or 500, via the
PlannerError handler in main.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from services.planner.clock import parse_datetime
from services.planner.errors import InvalidInputError
from services.planner.routers._deps import envelope, get_weather_service
from services.planner.weather.service import WeatherService

router = APIRouter(prefix="/weather", tags=["weather"])


@router.get("")
async def get_weather(
    request: Request,
    location: str | None = Query(default=None),
    startDate: str | None = Query(default=None),
    endDate: str | None = Query(default=None),
    service: WeatherService = Depends(get_weather_service),
) -> dict:
    if not location or not location.strip():
        raise InvalidInputError("Location parameter is required")

    if bool(startDate) != bool(endDate):
        raise InvalidInputError("startDate and endDate must be provided together")
    if startDate and endDate:
        start, end = parse_datetime(startDate), parse_datetime(endDate)
        if start is None or end is None:
            raise InvalidInputError("Invalid date format")
        if start > end:
            raise InvalidInputError("Start date must be before or equal to end date")
        data = await service.get_weather_for_trip(location, start, end)
    else:
        data = await service.get_weather_for_location(location)

    return envelope(request, {"weather": data.to_dict()})


@router.get("/cache")
async def cache_stats(
    request: Request,
    service: WeatherService = Depends(get_weather_service),
) -> dict:
    return envelope(request, {"stats": service.get_cache_stats().to_dict()})


@router.get("/cache/check")
async def check_cache(
    request: Request,
    location: str | None = Query(default=None),
    service: WeatherService = Depends(get_weather_service),
) -> dict:
    if not location or not location.strip():
        raise InvalidInputError("Location is required for cache check")
    cached = service.get_cached_weather(location)
    return envelope(request, {
        "hasCached": cached is not None,
        "cachedData": cached.to_dict() if cached is not None else None,
    })


@router.delete("/cache")
async def clear_cache(
    request: Request,
    service: WeatherService = Depends(get_weather_service),
) -> dict:
    service.clear_cache()
    return envelope(request, {"message": "Cache cleared"})


@router.delete("/cache/expired")
async def clear_expired_cache(
    request: Request,
    service: WeatherService = Depends(get_weather_service),
) -> dict:
    removed = service.clear_expired_cache()
    return envelope(request, {"message": "Expired cache entries cleared", "removed": removed})
