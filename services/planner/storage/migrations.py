"""
Versioned migrations for the persisted store payload.

Each Migration is a pair of pure transforms over the raw JSON dict. Migrations
are applied in strictly increasing version order; the versions already applied
are recorded in the payload so re-running is a no-op:

    "_migrationState": {
        "currentVersion": "1.1.0",
        "appliedMigrations": ["1.0.0", "1.1.0"],
        "lastMigration": "2026-10-19T12:00:00Z"
    }

Versions must be MAJOR.MINOR.PATCH with integer parts. Anything else raises
MigrationError instead of being compared loosely.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from services.planner.clock import Clock, to_iso, utc_now
from services.planner.errors import MigrationError

logger = logging.getLogger(__name__)

STATE_KEY = "_migrationState"
BASE_VERSION = "0.0.0"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

Payload = dict[str, Any]


@dataclass(frozen=True)
class Migration:
    version: str
    description: str
    up: Callable[[Payload], Payload]
    down: Callable[[Payload], Payload]


def parse_version(version: str) -> tuple[int, int, int]:
    match = _VERSION_RE.match(version) if isinstance(version, str) else None
    if match is None:
        raise MigrationError(f"Malformed version string: {version!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


# ---------------------------------------------------------------------------
# Migration steps
# ---------------------------------------------------------------------------


def _initial_up(data: Payload) -> Payload:
    result = dict(data)
    result.setdefault("trips", [])
    result.setdefault("weather", [])
    result.setdefault("lastSync", to_iso(utc_now()))
    return result


def _identity(data: Payload) -> Payload:
    return dict(data)


def _canonical_weather_keys_up(data: Payload) -> Payload:
    """Weather was once keyed by the raw location string; key it by the canonical form."""
    result = dict(data)
    entries = result.get("weather") or []
    if isinstance(entries, dict):
        entries = list(entries.items())
    merged: dict[str, Any] = {}
    for key, value in entries:
        merged[str(key).strip().lower()] = value
    result["weather"] = [[key, value] for key, value in merged.items()]
    return result


MIGRATIONS: list[Migration] = [
    Migration("1.0.0", "Initial data structure", _initial_up, _identity),
    Migration("1.1.0", "Key weather entries by canonical location", _canonical_weather_keys_up, _identity),
]

CURRENT_VERSION = MIGRATIONS[-1].version


class Migrator:
    """
    Applies MIGRATIONS to raw store payloads.

    Usage:
        migrator = Migrator()
        if migrator.needs_migration(payload):
            payload = migrator.migrate(payload)
    """

    def __init__(
        self,
        migrations: list[Migration] | None = None,
        target_version: str | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._migrations = sorted(migrations or MIGRATIONS, key=lambda m: parse_version(m.version))
        self._target = target_version or self._migrations[-1].version
        parse_version(self._target)
        self._clock = clock

    @property
    def target_version(self) -> str:
        return self._target

    def state(self, data: Payload) -> dict[str, Any]:
        state = data.get(STATE_KEY) or {}
        if not isinstance(state, dict):
            raise MigrationError(f"Malformed migration state: {state!r}")
        return {
            "currentVersion": state.get("currentVersion", BASE_VERSION),
            "appliedMigrations": list(state.get("appliedMigrations", [])),
            "lastMigration": state.get("lastMigration"),
        }

    def _set_state(self, data: Payload, version: str, applied: list[str]) -> None:
        data[STATE_KEY] = {
            "currentVersion": version,
            "appliedMigrations": applied,
            "lastMigration": to_iso(self._clock()),
        }

    def needs_migration(self, data: Payload) -> bool:
        current = self.state(data)["currentVersion"]
        return parse_version(current) < parse_version(self._target)

    def stamp(self, data: Payload) -> Payload:
        """Mark a freshly serialized payload as already at the target version."""
        applied = [
            m.version for m in self._migrations
            if parse_version(m.version) <= parse_version(self._target)
        ]
        data[STATE_KEY] = {
            "currentVersion": self._target,
            "appliedMigrations": applied,
            "lastMigration": self.state(data)["lastMigration"] or to_iso(self._clock()),
        }
        return data

    def migrate(self, data: Payload) -> Payload:
        state = self.state(data)
        current = parse_version(state["currentVersion"])
        target = parse_version(self._target)
        if current >= target:
            return data

        applied = state["appliedMigrations"]
        migrated = copy.deepcopy(data)
        for migration in self._migrations:
            version = parse_version(migration.version)
            if version <= current or version > target or migration.version in applied:
                continue
            logger.info("Applying migration: %s - %s", migration.version, migration.description)
            try:
                migrated = migration.up(migrated)
            except Exception as exc:
                raise MigrationError(f"Migration {migration.version} failed: {exc}") from exc
            applied.append(migration.version)

        self._set_state(migrated, self._target, applied)
        return migrated

    def rollback(self, data: Payload, target_version: str) -> Payload:
        state = self.state(data)
        target = parse_version(target_version)
        if target >= parse_version(state["currentVersion"]):
            raise MigrationError("Target version must be lower than current version")

        applied = state["appliedMigrations"]
        rolled_back = copy.deepcopy(data)
        for migration in reversed(self._migrations):
            if parse_version(migration.version) <= target or migration.version not in applied:
                continue
            logger.info("Rolling back migration: %s - %s", migration.version, migration.description)
            try:
                rolled_back = migration.down(rolled_back)
            except Exception as exc:
                raise MigrationError(f"Rollback of migration {migration.version} failed: {exc}") from exc

        remaining = [v for v in applied if parse_version(v) <= target]
        self._set_state(rolled_back, target_version, remaining)
        return rolled_back

    def migration_info(self, data: Payload) -> dict[str, Any]:
        state = self.state(data)
        return {
            "currentVersion": state["currentVersion"],
            "targetVersion": self._target,
            "needsMigration": self.needs_migration(data),
            "appliedMigrations": state["appliedMigrations"],
            "availableMigrations": [m.version for m in self._migrations],
        }
