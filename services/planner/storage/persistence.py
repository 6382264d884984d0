"""
Store persistence — a best-effort mirror of the in-memory TripStore.

Contract (consumed by TripService and the app lifespan):
  save(store)        serialize the whole store and write it out
  load() -> store    read, migrate if needed, deserialize (empty store if none)
  backup() -> handle copy the current payload aside
  restore(handle)    make a backup the current payload again

Backends:
  FilePersistence   {data_dir}/store.json + {data_dir}/backups/backup-<ts>.json
  RedisPersistence  {key} + {key}:backup:<ts>, newest-first index in {key}:backups

Payload format (camelCase, ISO-8601 datetimes, map entries as [key, value]
pairs so the dict order survives):

  {
    "trips":    [["<id>", {"id": ..., "startDate": "2026-04-01T00:00:00Z", ...}]],
    "weather":  [["paris", {"location": "Paris", ..., "lastUpdated": "..."}]],
    "lastSync": "2026-10-19T12:00:00Z",
    "_migrationState": {...}
  }

Failures surface as PersistenceError. Callers do not roll back their in-memory
change when a save fails.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Protocol

from redis.exceptions import RedisError

from services.planner.clock import Clock, parse_datetime, to_iso, utc_now
from services.planner.config import Settings
from services.planner.errors import PersistenceError
from services.planner.storage.migrations import Migrator
from services.planner.trips.models import Trip
from services.planner.trips.store import TripStore
from services.planner.weather.models import WeatherData

logger = logging.getLogger(__name__)


class Persistence(Protocol):
    async def save(self, store: TripStore) -> None:
        ...

    async def load(self) -> TripStore:
        ...

    async def backup(self) -> str:
        ...

    async def restore(self, handle: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_store(store: TripStore) -> dict[str, Any]:
    return {
        "trips": [[trip_id, trip.to_dict()] for trip_id, trip in store.trips.items()],
        "weather": [[key, data.to_dict()] for key, data in store.weather.items()],
        "lastSync": to_iso(store.last_sync),
    }


def _entries(raw: Any) -> list[tuple[str, Any]]:
    if raw is None:
        return []
    if isinstance(raw, dict):
        return list(raw.items())
    return [(key, value) for key, value in raw]


def deserialize_store(payload: dict[str, Any], clock: Clock = utc_now) -> TripStore:
    trips = {key: Trip.from_dict(value) for key, value in _entries(payload.get("trips"))}
    weather = {key: WeatherData.from_dict(value) for key, value in _entries(payload.get("weather"))}
    last_sync = parse_datetime(payload.get("lastSync")) or clock()
    return TripStore(trips=trips, weather=weather, last_sync=last_sync, clock=clock)


# ---------------------------------------------------------------------------
# Shared JSON backend behaviour
# ---------------------------------------------------------------------------


class JsonStorePersistence(ABC):
    """save/load/backup/restore over any medium that stores one JSON text per handle."""

    def __init__(self, migrator: Migrator | None = None, clock: Clock = utc_now) -> None:
        self._migrator = migrator or Migrator(clock=clock)
        self._clock = clock

    @abstractmethod
    async def _read_current(self) -> str | None:
        """Return the current payload text, or None if nothing has been saved."""

    @abstractmethod
    async def _write_current(self, text: str) -> None:
        ...

    @abstractmethod
    async def _write_backup(self, text: str) -> str:
        """Store a backup copy and return its handle."""

    @abstractmethod
    async def _read_backup(self, handle: str) -> str | None:
        ...

    def _backup_suffix(self) -> str:
        return to_iso(self._clock()).replace(":", "-").replace(".", "-")

    async def save(self, store: TripStore) -> None:
        payload = self._migrator.stamp(serialize_store(store))
        text = json.dumps(payload, indent=2)
        try:
            await self._write_current(text)
        except (OSError, RedisError) as exc:
            logger.error("Failed to save store: %s", exc)
            raise PersistenceError(f"Failed to save data: {exc}") from exc

    async def load(self) -> TripStore:
        try:
            text = await self._read_current()
        except (OSError, RedisError) as exc:
            raise PersistenceError(f"Failed to load data: {exc}") from exc

        if text is None:
            return TripStore(clock=self._clock)

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Data file is corrupted: {exc}") from exc
        if not isinstance(payload, dict):
            raise PersistenceError(
                f"Data file is corrupted: expected a JSON object, got {type(payload).__name__}"
            )

        if self._migrator.needs_migration(payload):
            logger.info("Data migration required, applying migrations...")
            await self.backup()
            payload = self._migrator.migrate(payload)
            try:
                await self._write_current(json.dumps(payload, indent=2))
            except (OSError, RedisError) as exc:
                raise PersistenceError(f"Failed to save migrated data: {exc}") from exc

        try:
            return deserialize_store(payload, clock=self._clock)
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Data file is corrupted: {exc}") from exc

    async def backup(self) -> str:
        try:
            text = await self._read_current()
            if text is None:
                raise PersistenceError("No data file exists to backup")
            handle = await self._write_backup(text)
        except (OSError, RedisError) as exc:
            raise PersistenceError(f"Failed to create backup: {exc}") from exc
        logger.info("Store backed up to %s", handle)
        return handle

    async def restore(self, handle: str) -> None:
        try:
            text = await self._read_backup(handle)
        except (OSError, RedisError) as exc:
            raise PersistenceError(f"Failed to restore backup: {exc}") from exc
        if text is None:
            raise PersistenceError(f"Backup does not exist: {handle}")
        try:
            json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Backup file is corrupted: {exc}") from exc
        try:
            await self._write_current(text)
        except (OSError, RedisError) as exc:
            raise PersistenceError(f"Failed to restore backup: {exc}") from exc
        logger.info("Store restored from %s", handle)


# ---------------------------------------------------------------------------
# File backend
# ---------------------------------------------------------------------------


class FilePersistence(JsonStorePersistence):
    """
    JSON file persistence.

    Usage:
        persistence = FilePersistence("data")
        store = await persistence.load()
        await persistence.save(store)
    """

    def __init__(
        self,
        data_dir: str | Path,
        max_backups: int = 10,
        migrator: Migrator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(migrator=migrator, clock=clock)
        self.data_dir = Path(data_dir)
        self.data_file = self.data_dir / "store.json"
        self.backup_dir = self.data_dir / "backups"
        self.max_backups = max_backups

    def _ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def _write_atomic(self, path: Path, text: str) -> None:
        self._ensure_directories()
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)

    def _read_if_exists(self, path: Path) -> str | None:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    async def _read_current(self) -> str | None:
        return await asyncio.to_thread(self._read_if_exists, self.data_file)

    async def _write_current(self, text: str) -> None:
        await asyncio.to_thread(self._write_atomic, self.data_file, text)

    async def _write_backup(self, text: str) -> str:
        path = self.backup_dir / f"backup-{self._backup_suffix()}.json"
        await asyncio.to_thread(self._write_atomic, path, text)
        await self.cleanup_old_backups()
        return str(path)

    async def _read_backup(self, handle: str) -> str | None:
        return await asyncio.to_thread(self._read_if_exists, Path(handle))

    async def cleanup_old_backups(self, max_backups: int | None = None) -> int:
        """Keep the newest `max_backups` backup files. Returns how many were deleted."""
        keep = max_backups or self.max_backups

        def _cleanup() -> int:
            if not self.backup_dir.exists():
                return 0
            backups = sorted(self.backup_dir.glob("backup-*.json"), key=lambda p: p.name, reverse=True)
            for path in backups[keep:]:
                path.unlink()
            return max(0, len(backups) - keep)

        try:
            return await asyncio.to_thread(_cleanup)
        except OSError as exc:
            logger.warning("Failed to cleanup old backups: %s", exc)
            return 0


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisPersistence(JsonStorePersistence):
    """
    Redis-backed persistence for deployments without a writable disk.

    Usage:
        persistence = RedisPersistence(redis_client, key="trip-planner:store")
    """

    def __init__(
        self,
        redis: Any,
        key: str = "trip-planner:store",
        max_backups: int = 10,
        migrator: Migrator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            redis: An async Redis client (redis.asyncio compatible) with
                   decode_responses=True.
        """
        super().__init__(migrator=migrator, clock=clock)
        self._redis = redis
        self.key = key
        self.index_key = f"{key}:backups"
        self.max_backups = max_backups

    async def _read_current(self) -> str | None:
        return await self._redis.get(self.key)

    async def _write_current(self, text: str) -> None:
        await self._redis.set(self.key, text)

    async def _write_backup(self, text: str) -> str:
        handle = f"{self.key}:backup:{self._backup_suffix()}"
        await self._redis.set(handle, text)
        await self._redis.lpush(self.index_key, handle)
        stale = await self._redis.lrange(self.index_key, self.max_backups, -1)
        if stale:
            await self._redis.delete(*stale)
            await self._redis.ltrim(self.index_key, 0, self.max_backups - 1)
        return handle

    async def _read_backup(self, handle: str) -> str | None:
        if not handle.startswith(f"{self.key}:backup:"):
            return None
        return await self._redis.get(handle)


def build_persistence(settings: Settings, redis: Any = None) -> JsonStorePersistence:
    """Pick the persistence backend named by PERSISTENCE_BACKEND."""
    if settings.persistence_backend == "redis":
        if redis is None:
            raise PersistenceError("PERSISTENCE_BACKEND=redis but no Redis client is available")
        return RedisPersistence(redis, key=settings.redis_store_key, max_backups=settings.max_backups)
    return FilePersistence(settings.data_dir, max_backups=settings.max_backups)


__all__ = [
    "FilePersistence",
    "JsonStorePersistence",
    "Persistence",
    "RedisPersistence",
    "build_persistence",
    "deserialize_store",
    "serialize_store",
]
