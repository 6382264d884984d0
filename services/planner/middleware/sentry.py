"""
Sentry instrumentation for the FastAPI service.
Server-side only. Strips sensitive headers and skips expected 4xx domain errors.
"""

from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from services.planner.config import settings
from services.planner.errors import PlannerError

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}


def _filter_headers(headers: Any) -> None:
    if isinstance(headers, dict):
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[FILTERED]"


def _strip_sensitive_data(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """before_send hook: drop expected domain errors, filter headers from breadcrumbs and requests."""
    exc_info = hint.get("exc_info") if hint else None
    if exc_info and isinstance(exc_info[1], PlannerError) and exc_info[1].status_code < 500:
        # 4xx errors are user input problems, not incidents
        return None

    if "breadcrumbs" in event:
        for breadcrumb in event["breadcrumbs"].get("values", []):
            data = breadcrumb.get("data", {})
            if isinstance(data, dict):
                _filter_headers(data.get("headers", {}))

    request = event.get("request", {})
    if isinstance(request, dict):
        _filter_headers(request.get("headers", {}))
    return event


def setup_sentry() -> bool:
    """Initialise Sentry when SENTRY_DSN is set. Returns whether it was enabled."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        before_send=_strip_sensitive_data,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
    )
    return True
