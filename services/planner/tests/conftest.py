"""
Shared test fixtures for the trip planner test suite.

Provides:
- a controllable clock pinned to 2026-10-19 12:00 UTC
- a scripted weather source and an in-memory persistence fake
- wired TripService / WeatherService instances over a fresh TripStore
- async FastAPI test client with those services injected into app.state

No test needs network access, Redis, or a writable data directory beyond
pytest's tmp_path.
"""

import os

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("WEATHER_USE_MOCK", "true")
os.environ.setdefault("PERSISTENCE_BACKEND", "file")

from services.planner.tests.helpers.factories import (  # noqa: E402
    FakeClock,
    FakePersistence,
    FakeWeatherSource,
)
from services.planner.trips.service import TripService  # noqa: E402
from services.planner.trips.store import TripStore  # noqa: E402
from services.planner.weather.cache import WeatherCache  # noqa: E402
from services.planner.weather.service import WeatherService  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> TripStore:
    return TripStore(clock=clock)


@pytest.fixture
def persistence() -> FakePersistence:
    return FakePersistence()


@pytest.fixture
def trip_service(store, persistence, clock) -> TripService:
    return TripService(store=store, persistence=persistence, clock=clock)


@pytest.fixture
def weather_source() -> FakeWeatherSource:
    return FakeWeatherSource()


@pytest.fixture
def weather_cache(clock) -> WeatherCache:
    return WeatherCache(clock=clock)


@pytest.fixture
def weather_service(weather_source, weather_cache, store, clock) -> WeatherService:
    return WeatherService(source=weather_source, cache=weather_cache, store=store, clock=clock)


@pytest.fixture
async def app(trip_service, weather_service, persistence):
    """The FastAPI app with test services injected (lifespan is not run)."""
    from services.planner.config import settings
    from services.planner.main import app as _app

    _app.state.settings = settings
    _app.state.redis = None
    _app.state.persistence = persistence
    _app.state.trip_service = trip_service
    _app.state.weather_service = weather_service
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
