"""
FastAPI dependencies for the services wired onto app.state during lifespan.
"""

from fastapi import Request

from services.planner.trips.service import TripService
from services.planner.weather.service import WeatherService


def get_trip_service(request: Request) -> TripService:
    return request.app.state.trip_service


def get_weather_service(request: Request) -> WeatherService:
    return request.app.state.weather_service


def envelope(request: Request, data) -> dict:
    """Success envelope shared by every endpoint."""
    return {
        "success": True,
        "data": data,
        "requestId": request.state.request_id,
    }
