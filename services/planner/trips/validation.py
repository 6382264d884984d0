"""
Trip input validation and sanitization.

Rules:
  - name:         required, 1-100 characters after trimming
  - destination:  required, 1-200 characters after trimming
  - startDate / endDate: required on create, must parse as a date or datetime
  - startDate <= endDate

Strings are trimmed and internal whitespace runs collapse to a single space.
Every violated rule is collected; a ValidationError always lists all of them,
never just the first.

Input keys may be camelCase (API payloads) or snake_case (Python callers).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from services.planner.clock import parse_datetime
from services.planner.errors import ValidationError
from services.planner.trips.models import Trip, TripDraft

NAME_MAX_LENGTH = 100
DESTINATION_MAX_LENGTH = 200

NAME_LENGTH_ERROR = f"Trip name must be between 1 and {NAME_MAX_LENGTH} characters"
DESTINATION_LENGTH_ERROR = f"Destination must be between 1 and {DESTINATION_MAX_LENGTH} characters"
DATE_ORDER_ERROR = "Start date must be before or equal to end date"

_WHITESPACE = re.compile(r"\s+")

_FIELD_ALIASES = {
    "name": ("name",),
    "destination": ("destination",),
    "start_date": ("startDate", "start_date"),
    "end_date": ("endDate", "end_date"),
}

_FIELD_LABELS = {
    "name": "Trip name",
    "destination": "Destination",
    "start_date": "Start date",
    "end_date": "End date",
}


def sanitize_string(value: str) -> str:
    return _WHITESPACE.sub(" ", value.strip())


def is_valid_trip_name(name: str) -> bool:
    return 0 < len(name.strip()) <= NAME_MAX_LENGTH


def is_valid_destination(destination: str) -> bool:
    return 0 < len(destination.strip()) <= DESTINATION_MAX_LENGTH


def is_valid_date_range(start: datetime, end: datetime) -> bool:
    return start <= end


def _lookup(data: Mapping[str, Any], field: str) -> tuple[bool, Any]:
    for key in _FIELD_ALIASES[field]:
        if key in data:
            return True, data[key]
    return False, None


def _check_text(field: str, raw: Any, errors: list[str]) -> str | None:
    if raw is None:
        errors.append(f"{_FIELD_LABELS[field]} is required")
        return None
    if not isinstance(raw, str):
        errors.append(f"{_FIELD_LABELS[field]} must be a string")
        return None
    value = sanitize_string(raw)
    valid = is_valid_trip_name(value) if field == "name" else is_valid_destination(value)
    if not valid:
        errors.append(NAME_LENGTH_ERROR if field == "name" else DESTINATION_LENGTH_ERROR)
        return None
    return value


def _check_date(field: str, raw: Any, errors: list[str]) -> datetime | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        errors.append(f"{_FIELD_LABELS[field]} is required")
        return None
    parsed = parse_datetime(raw)
    if parsed is None:
        errors.append(f"{_FIELD_LABELS[field]} is not a valid date")
    return parsed


def validate_create(data: Mapping[str, Any]) -> TripDraft:
    """Validate and sanitize create input. Raises ValidationError with every violation."""
    errors: list[str] = []

    name = _check_text("name", _lookup(data, "name")[1], errors)
    destination = _check_text("destination", _lookup(data, "destination")[1], errors)
    start = _check_date("start_date", _lookup(data, "start_date")[1], errors)
    end = _check_date("end_date", _lookup(data, "end_date")[1], errors)

    if start is not None and end is not None and not is_valid_date_range(start, end):
        errors.append(DATE_ORDER_ERROR)

    if errors:
        raise ValidationError(errors)

    return TripDraft(name=name, destination=destination, start_date=start, end_date=end)


def validate_update(data: Mapping[str, Any], existing: Trip | None = None) -> dict[str, Any]:
    """
    Validate and sanitize a partial update.

    Only supplied fields are checked. Returns a dict of snake_case attribute
    names to sanitized values, ready to merge over an existing Trip. Unknown
    keys (including id / createdAt / updatedAt) are ignored.

    With `existing`, date ordering is checked on the merged result, so moving
    only the start past the current end is rejected too.
    """
    errors: list[str] = []
    patch: dict[str, Any] = {}

    for field in ("name", "destination"):
        present, raw = _lookup(data, field)
        if present:
            value = _check_text(field, raw, errors)
            if value is not None:
                patch[field] = value

    dates_ok = True
    for field in ("start_date", "end_date"):
        present, raw = _lookup(data, field)
        if present:
            value = _check_date(field, raw, errors)
            if value is None:
                dates_ok = False
            else:
                patch[field] = value

    start, end = patch.get("start_date"), patch.get("end_date")
    if not dates_ok:
        start = end = None
    elif existing is not None:
        start = start or existing.start_date
        end = end or existing.end_date
    if start is not None and end is not None and not is_valid_date_range(start, end):
        errors.append(DATE_ORDER_ERROR)

    if errors:
        raise ValidationError(errors)

    return patch


def validate_trip_id(trip_id: Any) -> str:
    if not isinstance(trip_id, str) or not trip_id.strip():
        raise ValidationError(["Trip ID is required and must be a non-empty string"])
    return trip_id.strip()
