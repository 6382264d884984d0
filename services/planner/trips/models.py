"""Trip records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from services.planner.clock import parse_datetime, to_iso


@dataclass
class Trip:
    id: str
    name: str
    destination: str
    start_date: datetime
    end_date: datetime
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "destination": self.destination,
            "startDate": to_iso(self.start_date),
            "endDate": to_iso(self.end_date),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Trip:
        values = {}
        for attr, key in _DATE_FIELDS.items():
            parsed = parse_datetime(raw.get(key))
            if parsed is None:
                raise ValueError(f"invalid {key} for trip {raw.get('id')!r}: {raw.get(key)!r}")
            values[attr] = parsed
        return cls(id=raw["id"], name=raw["name"], destination=raw["destination"], **values)


@dataclass(frozen=True)
class TripDraft:
    """Sanitized, validated input for a new trip."""

    name: str
    destination: str
    start_date: datetime
    end_date: datetime


_DATE_FIELDS = {
    "start_date": "startDate",
    "end_date": "endDate",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}
