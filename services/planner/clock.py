"""
Time helpers shared by the trip and weather layers.

All datetimes inside the service are timezone-aware UTC. Anything that needs
"now" takes a `Clock` so tests can pin or advance time.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: object) -> datetime | None:
    """
    Coerce a datetime, date, or ISO-8601 string into an aware UTC datetime.

    Returns None when the value cannot be interpreted as a point in time.
    A bare date maps to midnight UTC on that day. A trailing "Z" is accepted.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def to_iso(value: datetime) -> str:
    """Serialize an aware datetime as ISO-8601 with a trailing Z."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def as_date(value: date | datetime) -> date:
    """Calendar date of a datetime (in UTC) or a date."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value
