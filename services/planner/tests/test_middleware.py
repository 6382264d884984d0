"""Tests for Sentry event scrubbing and CORS configuration."""

import pytest

from services.planner.errors import NotFoundError, PersistenceError
from services.planner.middleware.sentry import _strip_sensitive_data, setup_sentry


def _hint(exc):
    return {"exc_info": (type(exc), exc, None)}


class TestSentryBeforeSend:
    def test_drops_client_errors(self):
        assert _strip_sensitive_data({}, _hint(NotFoundError("abc"))) is None

    def test_keeps_server_errors(self):
        event = {"message": "boom"}
        assert _strip_sensitive_data(event, _hint(PersistenceError("disk full"))) is event

    def test_filters_request_headers(self):
        event = {"request": {"headers": {"Authorization": "Bearer x", "Accept": "*/*"}}}

        result = _strip_sensitive_data(event, {})

        assert result["request"]["headers"] == {"Authorization": "[FILTERED]", "Accept": "*/*"}

    def test_filters_breadcrumb_headers(self):
        event = {"breadcrumbs": {"values": [{"data": {"headers": {"Cookie": "session=1"}}}]}}

        result = _strip_sensitive_data(event, {})

        assert result["breadcrumbs"]["values"][0]["data"]["headers"] == {"Cookie": "[FILTERED]"}

    def test_disabled_without_dsn(self, monkeypatch):
        from services.planner.config import settings

        monkeypatch.setattr(settings, "sentry_dsn", "")
        assert setup_sentry() is False


class TestCors:
    @pytest.mark.asyncio
    async def test_allowed_origin_exposes_retry_after(self, client):
        from services.planner.config import settings

        origin = settings.cors_origins[0]
        response = await client.get("/health", headers={"Origin": origin})

        assert response.headers["access-control-allow-origin"] == origin
        assert "retry-after" in response.headers["access-control-expose-headers"].lower()

    @pytest.mark.asyncio
    async def test_unknown_origin_not_allowed(self, client):
        response = await client.get("/health", headers={"Origin": "https://evil.example"})
        assert "access-control-allow-origin" not in response.headers
