"""SQLite-backed store of saved locations.

The store is constructed explicitly and handed to whoever needs it; it
is opened once at start-up and closed at shutdown.

Schema upgrades are additive: on open, every migration step above the
stored ``schema_version`` runs in order and existing rows are kept.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from pylocate._constants import SCHEMA_VERSION_KEY
from pylocate.exceptions import LocateError, LocateInvalidInputError, LocateStoreError
from pylocate.models.location import SavedLocation

_logger = logging.getLogger(__name__)

_LOCATIONS_DDL = (
    "CREATE TABLE locations ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "latitude REAL NOT NULL, "
    "longitude REAL NOT NULL, "
    "timestamp TEXT NOT NULL, "
    "name TEXT NOT NULL)"
)


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)).fetchone()
    return row is not None


def _migrate_v1(conn: sqlite3.Connection) -> None:
    """Create ``locations`` with NOT NULL columns.

    Earlier releases created the table without constraints. Such a table
    is rebuilt and every complete row is copied over with its id.
    """
    if not _table_exists(conn, "locations"):
        conn.execute(_LOCATIONS_DDL)
        return

    conn.execute("ALTER TABLE locations RENAME TO locations_legacy")
    conn.execute(_LOCATIONS_DDL)
    copied = conn.execute(
        "INSERT INTO locations (id, latitude, longitude, timestamp, name) "
        "SELECT id, latitude, longitude, timestamp, name FROM locations_legacy "
        "WHERE latitude IS NOT NULL AND longitude IS NOT NULL "
        "AND timestamp IS NOT NULL AND trim(coalesce(name, '')) <> '' "
        "ORDER BY id"
    ).rowcount
    # Keep the id counter so deleted ids are never handed out again.
    legacy_seq = conn.execute("SELECT seq FROM sqlite_sequence WHERE name = 'locations_legacy'").fetchone()
    if legacy_seq is not None:
        conn.execute("DELETE FROM sqlite_sequence WHERE name = 'locations'")
        conn.execute("INSERT INTO sqlite_sequence (name, seq) VALUES ('locations', ?)", (legacy_seq[0],))
    conn.execute("DROP TABLE locations_legacy")
    _logger.debug("Rebuilt legacy locations table rows=%s", copied)


MIGRATIONS: tuple[Callable[[sqlite3.Connection], None], ...] = (_migrate_v1,)
"""Migration steps; step *n* (1-based) upgrades a database to version *n*."""

SCHEMA_VERSION = len(MIGRATIONS)


_SQLITE_INT_MIN = -(2**63)
_SQLITE_INT_MAX = 2**63 - 1


def _fits_rowid(location_id: int) -> bool:
    return _SQLITE_INT_MIN <= location_id <= _SQLITE_INT_MAX


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_location_fields(latitude: Any, longitude: Any, timestamp: Any, name: Any) -> str:
    """Check create() inputs by type, never by truthiness; return the stripped name."""
    if latitude is None or longitude is None or timestamp is None or name is None:
        raise LocateInvalidInputError("All location fields are required")
    if not _is_number(latitude) or not _is_number(longitude):
        raise LocateInvalidInputError("Latitude and longitude must be numbers")
    if not -90.0 <= latitude <= 90.0:
        raise LocateInvalidInputError(f"Latitude must be between -90 and 90, got {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise LocateInvalidInputError(f"Longitude must be between -180 and 180, got {longitude}")
    if not isinstance(timestamp, str):
        raise LocateInvalidInputError("Timestamp must be an ISO-8601 string")
    try:
        datetime.fromisoformat(timestamp)
    except ValueError as exc:
        raise LocateInvalidInputError(f"Timestamp is not ISO-8601: {timestamp!r}") from exc
    if not isinstance(name, str) or not name.strip():
        raise LocateInvalidInputError("Name must be a non-empty string")
    return name.strip()


class LocationStore:
    """CRUD over :class:`SavedLocation` rows (no update operation).

    Usage::

        with LocationStore("locations.db") as store:
            location_id = store.create(10.0, 20.0, "2026-01-01T00:00:00+00:00", "Home")
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        # Serializes writes so AUTOINCREMENT ids follow call order.
        self._lock = threading.Lock()

    def __enter__(self) -> LocationStore:
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Open the database and apply pending migrations."""
        if self._conn is not None:
            return
        try:
            conn = sqlite3.connect(self._path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
        except sqlite3.Error as exc:
            raise LocateStoreError(f"Cannot open database {self._path}: {exc}") from exc
        self._conn = conn
        _logger.debug("Database opened path=%s", self._path)
        try:
            self._migrate()
        except LocateStoreError:
            self.close()
            raise

    def close(self) -> None:
        conn = self._conn
        self._conn = None
        if conn is not None:
            conn.close()
            _logger.debug("Database closed path=%s", self._path)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise LocateError("Store not opened. Use 'with LocationStore(...) as store:'")
        return self._conn

    def schema_version(self) -> int:
        """Stored schema version; ``0`` when missing or unparseable."""
        conn = self._require_conn()
        try:
            if not _table_exists(conn, "metadata"):
                return 0
            row = conn.execute("SELECT value FROM metadata WHERE key = ?", (SCHEMA_VERSION_KEY,)).fetchone()
        except sqlite3.Error as exc:
            raise LocateStoreError(f"Failed to read schema version: {exc}") from exc
        if row is None:
            return 0
        try:
            return int(row["value"])
        except (TypeError, ValueError):
            return 0

    def _migrate(self) -> None:
        conn = self._require_conn()
        current = self.schema_version()
        if current >= SCHEMA_VERSION:
            _logger.debug("Database already at version %s", current)
            return

        with self._lock:
            try:
                with conn:
                    conn.execute("CREATE TABLE IF NOT EXISTS metadata (key TEXT PRIMARY KEY, value TEXT)")
                    for version in range(current + 1, SCHEMA_VERSION + 1):
                        MIGRATIONS[version - 1](conn)
                        _logger.debug("Applied schema migration version=%s", version)
                    conn.execute(
                        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                        (SCHEMA_VERSION_KEY, str(SCHEMA_VERSION)),
                    )
            except sqlite3.Error as exc:
                raise LocateStoreError(f"Schema migration failed: {exc}") from exc
        _logger.debug("Database migrated from version %s to %s", current, SCHEMA_VERSION)

    def create(self, latitude: float, longitude: float, timestamp: str, name: str) -> int:
        """Insert a location and return its new id."""
        clean_name = _validate_location_fields(latitude, longitude, timestamp, name)
        conn = self._require_conn()
        with self._lock:
            try:
                with conn:
                    cursor = conn.execute(
                        "INSERT INTO locations (latitude, longitude, timestamp, name) VALUES (?, ?, ?, ?)",
                        (float(latitude), float(longitude), timestamp, clean_name),
                    )
            except sqlite3.Error as exc:
                raise LocateStoreError(f"Failed to add location: {exc}") from exc
        location_id = cursor.lastrowid
        if location_id is None:
            raise LocateStoreError("Insert did not return a row id")
        _logger.debug("Location added id=%s", location_id)
        return location_id

    def list_all(self) -> list[SavedLocation]:
        """Every saved location, oldest first."""
        conn = self._require_conn()
        try:
            rows = conn.execute("SELECT id, latitude, longitude, timestamp, name FROM locations ORDER BY id").fetchall()
        except sqlite3.Error as exc:
            raise LocateStoreError(f"Failed to fetch locations: {exc}") from exc
        return [SavedLocation.model_validate(dict(row)) for row in rows]

    def get(self, location_id: int) -> SavedLocation | None:
        if not isinstance(location_id, int) or isinstance(location_id, bool):
            raise LocateInvalidInputError("Valid location ID is required")
        conn = self._require_conn()
        if not _fits_rowid(location_id):
            return None
        try:
            row = conn.execute(
                "SELECT id, latitude, longitude, timestamp, name FROM locations WHERE id = ?",
                (location_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise LocateStoreError(f"Failed to fetch location {location_id}: {exc}") from exc
        return SavedLocation.model_validate(dict(row)) if row is not None else None

    def delete_by_id(self, location_id: int) -> bool:
        """Delete a location; ``False`` when no row matched."""
        if not isinstance(location_id, int) or isinstance(location_id, bool):
            raise LocateInvalidInputError("Valid location ID is required")
        conn = self._require_conn()
        if not _fits_rowid(location_id):
            return False
        with self._lock:
            try:
                with conn:
                    cursor = conn.execute("DELETE FROM locations WHERE id = ?", (location_id,))
            except sqlite3.Error as exc:
                raise LocateStoreError(f"Failed to delete location {location_id}: {exc}") from exc
        _logger.debug("Deleted location id=%s rows=%s", location_id, cursor.rowcount)
        return cursor.rowcount > 0
