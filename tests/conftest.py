from __future__ import annotations

import calendar
from typing import Callable

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq
import pytest

from gtfs_archive.adapters.store_sqlite import SqlitePositionStore
from gtfs_archive.domain.models import VehiclePositionRecord


def utc_ts(year: int, month: int, day: int = 1, hour: int = 0, minute: int = 0, second: int = 0) -> int:
    return calendar.timegm((year, month, day, hour, minute, second))


def make_record(vehicle_id: str | None, timestamp: int, **fields) -> VehiclePositionRecord:
    # (trip_id, timestamp) is unique in the store
    fields.setdefault("trip_id", f"trip-{vehicle_id}-{timestamp}")
    fields.setdefault("route_id", "R10")
    fields.setdefault("latitude", 59.33)
    fields.setdefault("longitude", 18.06)
    fields.setdefault("current_stop_sequence", 4)
    fields.setdefault("start_time", timestamp - 600)
    return VehiclePositionRecord(timestamp=timestamp, vehicle_id=vehicle_id, **fields)


def partition_rows(path: str) -> list[tuple[str | None, int]]:
    """(vehicle_id, epoch seconds) for every row, in file order."""
    table = pq.read_table(path)
    vids = table["vehicle_id"].to_pylist()
    ms = pc.cast(table["timestamp"], pa.int64()).to_pylist()
    return [(v, t // 1000) for v, t in zip(vids, ms)]


@pytest.fixture
def ts() -> Callable[..., int]:
    return utc_ts


@pytest.fixture
def record() -> Callable[..., VehiclePositionRecord]:
    return make_record


@pytest.fixture
def read_rows() -> Callable[[str], list[tuple[str | None, int]]]:
    return partition_rows


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "realtime.db")


@pytest.fixture
def store(db_path):
    s = SqlitePositionStore(db_path, create=True)
    s.ensure_schema()
    yield s
    s.close()


@pytest.fixture
def archive_root(tmp_path) -> str:
    return str(tmp_path / "data" / "archive")
