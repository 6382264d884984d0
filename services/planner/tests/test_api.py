"""
API envelope and endpoint tests.

Tests:
- Envelope shape (success/error) and requestId on every response
- Health check endpoint
- Trip CRUD, listing filters, dashboard, trip weather
- Weather lookup, error status mapping (429/503/404), cache endpoints
"""

from datetime import timedelta

import pytest

from services.planner.errors import (
    LocationNotFoundError,
    RateLimitedError,
    WeatherNetworkError,
    WeatherSourceError,
)
from services.planner.tests.helpers.factories import FIXED_NOW, make_trip


def _trip_body(**overrides):
    body = {
        "name": "Autumn in Kyoto",
        "destination": "Kyoto, Japan",
        "startDate": "2026-11-18",
        "endDate": "2026-11-25",
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    """GET /health returns envelope with status and version."""

    @pytest.mark.asyncio
    async def test_health_returns_200(self, client):
        response = await client.get("/health")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_health_envelope_shape(self, client, store):
        store.add_trip(make_trip())
        body = (await client.get("/health")).json()

        assert body["success"] is True
        assert body["data"]["status"] == "healthy"
        assert body["data"]["trips"] == 1
        assert body["data"]["lastSync"] == "2026-10-19T12:00:00Z"
        assert "version" in body["data"]

    @pytest.mark.asyncio
    async def test_health_has_request_id(self, client):
        response = await client.get("/health")
        assert "x-request-id" in response.headers


# ---------------------------------------------------------------------------
# Envelope shape
# ---------------------------------------------------------------------------

class TestAPIEnvelope:
    """All responses follow {success, data|error, requestId} shape."""

    @pytest.mark.asyncio
    async def test_success_envelope(self, client):
        body = (await client.get("/health")).json()
        assert body["success"] is True
        assert "requestId" in body

    @pytest.mark.asyncio
    async def test_404_error_envelope(self, client):
        response = await client.get("/nonexistent-route")
        body = response.json()
        assert response.status_code == 404
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"
        assert "requestId" in body

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["x-request-id"] == "req-123"
        assert response.json()["requestId"] == "req-123"

    @pytest.mark.asyncio
    async def test_error_envelope_carries_request_id(self, client):
        response = await client.get("/trips/missing", headers={"X-Request-ID": "req-404"})
        assert response.json()["requestId"] == "req-404"


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

class TestTripCrud:
    @pytest.mark.asyncio
    async def test_create_returns_201(self, client, persistence):
        response = await client.post("/trips", json=_trip_body())

        assert response.status_code == 201
        trip = response.json()["data"]["trip"]
        assert trip["name"] == "Autumn in Kyoto"
        assert trip["startDate"] == "2026-11-18T00:00:00Z"
        assert trip["createdAt"] == trip["updatedAt"] == "2026-10-19T12:00:00Z"
        assert trip["status"] == "upcoming"
        assert trip["durationDays"] == 7
        assert trip["daysUntil"] == 30
        assert len(persistence.saved) == 1

    @pytest.mark.asyncio
    async def test_create_reports_all_errors(self, client):
        response = await client.post(
            "/trips", json=_trip_body(name="", startDate="2026-12-01", endDate="2026-11-01")
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert len(error["details"]) == 2
        assert "Start date must be before or equal to end date" in error["details"]

    @pytest.mark.asyncio
    async def test_create_with_missing_fields(self, client):
        response = await client.post("/trips", json={})

        assert response.status_code == 422
        assert len(response.json()["error"]["details"]) == 4

    @pytest.mark.asyncio
    async def test_malformed_body_uses_envelope(self, client):
        response = await client.post("/trips", json={"name": ["not", "a", "string"]})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]

    @pytest.mark.asyncio
    async def test_wrong_type_reported_with_missing_fields(self, client, persistence):
        response = await client.post("/trips", json={"name": 123})

        assert response.status_code == 422
        assert response.json()["error"]["details"] == [
            "Trip name must be a string",
            "Destination is required",
            "Start date is required",
            "End date is required",
        ]
        assert persistence.saved == []

    @pytest.mark.asyncio
    async def test_patch_wrong_types_all_reported(self, client):
        created = (await client.post("/trips", json=_trip_body())).json()["data"]["trip"]

        response = await client.patch(
            f"/trips/{created['id']}", json={"destination": 7, "endDate": 20261130}
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"] == [
            "Destination must be a string",
            "End date is not a valid date",
        ]

    @pytest.mark.asyncio
    async def test_get_by_id(self, client):
        created = (await client.post("/trips", json=_trip_body())).json()["data"]["trip"]

        response = await client.get(f"/trips/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["trip"]["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_get_unknown_trip(self, client):
        response = await client.get("/trips/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"] == {
            "code": "NOT_FOUND",
            "message": "Trip not found with ID: does-not-exist",
        }

    @pytest.mark.asyncio
    async def test_patch_updates_supplied_fields(self, client, clock):
        created = (await client.post("/trips", json=_trip_body())).json()["data"]["trip"]
        clock.advance(hours=2)

        response = await client.patch(f"/trips/{created['id']}", json={"name": "Kyoto & Nara"})

        trip = response.json()["data"]["trip"]
        assert response.status_code == 200
        assert trip["name"] == "Kyoto & Nara"
        assert trip["destination"] == created["destination"]
        assert trip["updatedAt"] == "2026-10-19T14:00:00Z"
        assert trip["createdAt"] == created["createdAt"]

    @pytest.mark.asyncio
    async def test_patch_invalid_dates(self, client):
        created = (await client.post("/trips", json=_trip_body())).json()["data"]["trip"]

        response = await client.patch(f"/trips/{created['id']}", json={"endDate": "2026-11-01"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_patch_unknown_trip(self, client):
        response = await client.patch("/trips/nope", json={"name": "x"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, client):
        created = (await client.post("/trips", json=_trip_body())).json()["data"]["trip"]

        response = await client.delete(f"/trips/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"] == {"deleted": True}
        assert (await client.get(f"/trips/{created['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_persistence_failure_is_500_with_generic_message(self, client, persistence, store):
        persistence.fail_saves = True

        response = await client.post("/trips", json=_trip_body())

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "PERSISTENCE_ERROR"
        assert "disk full" not in error["message"]
        # in-memory change is not rolled back
        assert len(store.trips) == 1


class TestTripListing:
    @pytest.fixture
    def seeded(self, store):
        store.add_trip(make_trip(name="Soon", destination="Paris, France",
                                 start_date=FIXED_NOW + timedelta(days=5),
                                 end_date=FIXED_NOW + timedelta(days=10)))
        store.add_trip(make_trip(name="Done", destination="Paris, Texas",
                                 start_date=FIXED_NOW - timedelta(days=10),
                                 end_date=FIXED_NOW - timedelta(days=5)))
        store.add_trip(make_trip(name="Now", destination="Rome, Italy",
                                 start_date=FIXED_NOW - timedelta(days=1),
                                 end_date=FIXED_NOW + timedelta(days=1)))

    @pytest.mark.asyncio
    async def test_list_in_display_order(self, client, seeded):
        data = (await client.get("/trips")).json()["data"]

        assert data["count"] == 3
        assert [t["name"] for t in data["trips"]] == ["Now", "Soon", "Done"]
        assert [t["status"] for t in data["trips"]] == ["current", "upcoming", "past"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bucket, names", [
        ("upcoming", ["Soon"]),
        ("past", ["Done"]),
        ("current", ["Now"]),
    ])
    async def test_filter(self, client, seeded, bucket, names):
        data = (await client.get("/trips", params={"filter": bucket})).json()["data"]
        assert [t["name"] for t in data["trips"]] == names

    @pytest.mark.asyncio
    async def test_unknown_filter(self, client, seeded):
        response = await client.get("/trips", params={"filter": "someday"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    @pytest.mark.asyncio
    async def test_destination_search(self, client, seeded):
        data = (await client.get("/trips", params={"destination": "paris"})).json()["data"]
        assert sorted(t["name"] for t in data["trips"]) == ["Done", "Soon"]

    @pytest.mark.asyncio
    async def test_blank_destination_search(self, client, seeded):
        response = await client.get("/trips", params={"destination": "  "})
        assert response.status_code == 422
        assert response.json()["error"]["details"] == ["Destination cannot be empty"]

    @pytest.mark.asyncio
    async def test_dashboard(self, client, seeded):
        data = (await client.get("/trips/dashboard")).json()["data"]

        assert [t["name"] for t in data["current"]] == ["Now"]
        assert [t["name"] for t in data["upcoming"]] == ["Soon"]
        assert [t["name"] for t in data["past"]] == ["Done"]


class TestTripWeather:
    @pytest.mark.asyncio
    async def test_forecast_narrowed_to_trip(self, client, store, weather_source):
        trip = make_trip(destination="Lisbon",
                         start_date=FIXED_NOW + timedelta(days=1),
                         end_date=FIXED_NOW + timedelta(days=2))
        store.add_trip(trip)

        response = await client.get(f"/trips/{trip.id}/weather")

        weather = response.json()["data"]["weather"]
        assert response.status_code == 200
        assert weather_source.calls == ["Lisbon"]
        assert [d["date"] for d in weather["forecast"]] == ["2026-10-20", "2026-10-21"]

    @pytest.mark.asyncio
    async def test_unknown_trip(self, client, weather_source):
        response = await client.get("/trips/nope/weather")
        assert response.status_code == 404
        assert weather_source.calls == []


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------

class TestWeatherEndpoint:
    @pytest.mark.asyncio
    async def test_lookup(self, client):
        response = await client.get("/weather", params={"location": "Paris"})

        weather = response.json()["data"]["weather"]
        assert response.status_code == 200
        assert weather["location"] == "Paris"
        assert weather["current"]["temperature"] == 20
        assert weather["lastUpdated"] == "2026-10-19T12:00:00Z"
        assert len(weather["forecast"]) == 5

    @pytest.mark.asyncio
    async def test_second_lookup_served_from_cache(self, client, weather_source):
        await client.get("/weather", params={"location": "Paris"})
        await client.get("/weather", params={"location": "PARIS"})
        assert weather_source.calls == ["Paris"]

    @pytest.mark.asyncio
    async def test_date_range(self, client):
        response = await client.get("/weather", params={
            "location": "Paris", "startDate": "2026-10-20", "endDate": "2026-10-20",
        })
        assert [d["date"] for d in response.json()["data"]["weather"]["forecast"]] == ["2026-10-20"]

    @pytest.mark.asyncio
    async def test_missing_location(self, client):
        response = await client.get("/weather")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_dates(self, client):
        response = await client.get("/weather", params={
            "location": "Paris", "startDate": "soon", "endDate": "2026-10-20",
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_reversed_dates(self, client):
        response = await client.get("/weather", params={
            "location": "Paris", "startDate": "2026-10-22", "endDate": "2026-10-20",
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"startDate": "2026-10-20"},
        {"endDate": "2026-10-20"},
    ])
    async def test_half_open_date_range_rejected(self, client, weather_source, params):
        response = await client.get("/weather", params={"location": "Paris", **params})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "startDate and endDate must be provided together"
        assert weather_source.calls == []

    @pytest.mark.asyncio
    async def test_malformed_source_response_is_500(self, client, weather_source):
        weather_source.payload = {"location": "Paris", "error": {"code": 9999}}

        response = await client.get("/weather", params={"location": "Paris"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "WEATHER_SOURCE_ERROR"

    @pytest.mark.asyncio
    async def test_rate_limited_sets_retry_after(self, client, weather_source):
        weather_source.error = RateLimitedError(41.5)

        response = await client.get("/weather", params={"location": "Paris"})

        assert response.status_code == 429
        assert response.headers["retry-after"] == "42"
        assert response.json()["error"]["code"] == "RATE_LIMITED"

    @pytest.mark.asyncio
    async def test_network_failure_is_503(self, client, weather_source):
        weather_source.error = WeatherNetworkError("connection refused")

        response = await client.get("/weather", params={"location": "Paris"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "WEATHER_UNREACHABLE"

    @pytest.mark.asyncio
    async def test_unknown_location_is_404(self, client, weather_source):
        weather_source.error = LocationNotFoundError("Location not found: Atlantis")

        response = await client.get("/weather", params={"location": "Atlantis"})

        assert response.status_code == 404
        assert "Atlantis" in response.json()["error"]["message"]

    @pytest.mark.asyncio
    async def test_stale_cache_served_on_failure(self, client, weather_source, clock):
        await client.get("/weather", params={"location": "Paris"})
        clock.advance(hours=3)
        weather_source.error = WeatherSourceError("Weather service temporarily unavailable")

        response = await client.get("/weather", params={"location": "Paris"})

        assert response.status_code == 200
        assert response.json()["data"]["weather"]["lastUpdated"] == "2026-10-19T12:00:00Z"


class TestWeatherCacheEndpoints:
    @pytest.mark.asyncio
    async def test_stats(self, client):
        await client.get("/weather", params={"location": "Paris"})

        data = (await client.get("/weather/cache")).json()["data"]

        assert data == {"stats": {"count": 1, "locations": ["paris"]}}

    @pytest.mark.asyncio
    async def test_check_does_not_fetch(self, client, weather_source):
        data = (await client.get("/weather/cache/check", params={"location": "Paris"})).json()["data"]

        assert data == {"hasCached": False, "cachedData": None}
        assert weather_source.calls == []

    @pytest.mark.asyncio
    async def test_check_hides_stale(self, client, clock):
        await client.get("/weather", params={"location": "Paris"})
        assert (await client.get("/weather/cache/check", params={"location": "paris"})).json()["data"]["hasCached"]

        clock.advance(minutes=31)

        data = (await client.get("/weather/cache/check", params={"location": "paris"})).json()["data"]
        assert data["hasCached"] is False

    @pytest.mark.asyncio
    async def test_clear(self, client):
        await client.get("/weather", params={"location": "Paris"})

        response = await client.delete("/weather/cache")

        assert response.status_code == 200
        assert (await client.get("/weather/cache")).json()["data"]["stats"]["count"] == 0

    @pytest.mark.asyncio
    async def test_cleared_weather_is_not_persisted_again(self, client, store, persistence):
        await client.get("/weather", params={"location": "Paris"})
        await client.delete("/weather/cache")

        await client.post("/trips", json=_trip_body())

        assert store.weather == {}
        assert persistence.saved[-1]["weather"] == []

    @pytest.mark.asyncio
    async def test_clear_expired(self, client, clock):
        await client.get("/weather", params={"location": "Paris"})
        clock.advance(minutes=45)
        await client.get("/weather", params={"location": "Rome"})

        data = (await client.delete("/weather/cache/expired")).json()["data"]

        assert data["removed"] == 1
        stats = (await client.get("/weather/cache")).json()["data"]["stats"]
        assert stats["locations"] == ["rome"]


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

class TestStartup:
    @pytest.mark.asyncio
    async def test_unreadable_store_starts_empty(self, tmp_path, monkeypatch):
        from fastapi import FastAPI

        from services.planner.config import settings
        from services.planner.main import lifespan

        (tmp_path / "store.json").write_text("[]")
        monkeypatch.setattr(settings, "data_dir", str(tmp_path))
        monkeypatch.setattr(settings, "persistence_backend", "file")
        monkeypatch.setattr(settings, "sentry_dsn", "")

        target = FastAPI()
        async with lifespan(target):
            assert target.state.trip_service.get_all_trips() == []
            assert target.state.weather_service.get_cache_stats().count == 0
