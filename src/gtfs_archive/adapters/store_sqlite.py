"""
SQLite transactional store for vehicle positions.

The ingestor appends to `vehicle_positions`; the archiver only reads it.
Both timestamps are stored as epoch-second integers because SQLite has no
native timestamp type. WAL journaling lets a long archive scan run while
ingestion keeps writing.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from typing import Iterable, Iterator

from ..domain.models import VehiclePositionRecord
from ..errors import ArchiveDiscoveryError, ArchiveIOError, RecordCodecError

log = logging.getLogger(__name__)

STORE_FILE = "realtime.db"

COLUMNS: tuple[tuple[str, str], ...] = (
    ("trip_id",               "TEXT"),
    ("route_id",              "TEXT"),
    ("direction_id",          "INT8"),
    ("start_time",            "DATETIME"),
    ("schedule_relationship", "INT8"),
    ("latitude",              "REAL"),
    ("longitude",             "REAL"),
    ("bearing",               "REAL"),
    ("odometer",              "REAL"),
    ("speed",                 "REAL"),
    ("current_stop_sequence", "INTEGER"),
    ("stop_id",               "TEXT"),
    ("current_status",        "INT8"),
    ("timestamp",             "DATETIME"),
    ("congestion_level",      "INT8"),
    ("occupancy_status",      "INT8"),
    ("vehicle_id",            "TEXT"),
    ("vehicle_label",         "TEXT"),
    ("license_plate",         "TEXT"),
)
_NAMES = tuple(name for name, _ in COLUMNS)
_CAST_INT = {"start_time", "timestamp"}

_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS vehicle_positions (\n"
    + "".join(f"    {name} {sql_type},\n" for name, sql_type in COLUMNS)
    + "    UNIQUE(trip_id, timestamp))"
)

_INSERT = (
    f"INSERT INTO vehicle_positions ({', '.join(_NAMES)}) "
    f"VALUES ({', '.join('?' for _ in _NAMES)}) ON CONFLICT DO NOTHING"
)

# timestamp > 0 skips rows the feed sent without a timestamp
_RANGE_QUERY = """
    SELECT
        MIN(timestamp) AS min_ts,
        MAX(timestamp) AS max_ts,
        strftime('%Y-%m', MIN(timestamp), 'unixepoch') AS min_ym,
        strftime('%Y-%m', MAX(timestamp), 'unixepoch') AS max_ym
    FROM vehicle_positions WHERE timestamp > 0
"""

_PARTITION_QUERY = (
    "SELECT "
    + ", ".join(f"CAST({n} AS INT) AS {n}" if n in _CAST_INT else n for n in _NAMES)
    + " FROM vehicle_positions WHERE timestamp >= ? AND timestamp < ? AND timestamp > 0"
)


def _row_to_record(row: sqlite3.Row) -> VehiclePositionRecord:
    try:
        return VehiclePositionRecord(**{name: row[name] for name in _NAMES})
    except (TypeError, IndexError) as e:
        raise RecordCodecError(f"malformed vehicle_positions row: {e}") from e


class SqlitePositionStore:
    def __init__(self, path: str, *, create: bool = False, busy_timeout_ms: int = 5000) -> None:
        self.path = path
        if not create and not os.path.exists(path):
            raise ArchiveIOError(f"store not found: {path}", path=path)
        if create:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        try:
            self._conn = sqlite3.connect(
                path,
                timeout=busy_timeout_ms / 1000.0,
                isolation_level=None,  # explicit transactions only
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as e:
            raise ArchiveIOError(f"cannot open store {path}: {e}", path=path) from e

    def ensure_schema(self) -> None:
        try:
            self._conn.execute(_CREATE_TABLE)
        except sqlite3.Error as e:
            raise ArchiveIOError(f"cannot create schema in {self.path}: {e}", path=self.path) from e

    def insert_positions(self, records: Iterable[VehiclePositionRecord]) -> int:
        """Insert in one transaction; rows clashing on (trip_id, timestamp) are ignored."""
        before = self._conn.total_changes
        try:
            self._conn.execute("BEGIN")
            self._conn.executemany(_INSERT, ([getattr(r, n) for n in _NAMES] for r in records))
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise ArchiveIOError(f"insert failed on {self.path}: {e}", path=self.path) from e
        return self._conn.total_changes - before

    def archive_range(self) -> tuple[str, str] | None:
        try:
            row = self._conn.execute(_RANGE_QUERY).fetchone()
        except sqlite3.Error as e:
            raise ArchiveDiscoveryError(f"range query failed on {self.path}: {e}") from e
        if row is None or row["min_ts"] is None:
            return None
        # strftime yields NULL for timestamps outside SQLite's date range
        if not row["min_ym"] or not row["max_ym"]:
            raise ArchiveDiscoveryError(
                f"cannot format archive range on {self.path}: "
                f"timestamps {row['min_ts']}..{row['max_ts']} are not valid epoch seconds"
            )
        return row["min_ym"], row["max_ym"]

    def iter_positions(self, start_ts: int, end_ts: int) -> Iterator[VehiclePositionRecord]:
        log.debug("scanning %s for %d <= timestamp < %d", self.path, start_ts, end_ts)
        try:
            cursor = self._conn.execute(_PARTITION_QUERY, (start_ts, end_ts))
            for row in cursor:
                yield _row_to_record(row)
        except sqlite3.Error as e:
            raise RecordCodecError(f"scan failed on {self.path}: {e}") from e

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqlitePositionStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
