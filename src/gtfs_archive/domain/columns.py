from __future__ import annotations

import pyarrow as pa

from .models import VehiclePositionRecord


# ---------------------------- archive schema ----------------------------------

TIMESTAMP_TYPE = pa.timestamp("ms", tz="UTC")

ARCHIVE_SCHEMA = pa.schema([
    pa.field("trip_id",               pa.string()),
    pa.field("route_id",              pa.string()),
    pa.field("direction_id",          pa.int8()),
    pa.field("start_time",            TIMESTAMP_TYPE),
    pa.field("schedule_relationship", pa.int8()),
    pa.field("latitude",              pa.float64()),
    pa.field("longitude",             pa.float64()),
    pa.field("bearing",               pa.float64()),
    pa.field("odometer",              pa.float64()),
    pa.field("speed",                 pa.float64()),
    pa.field("current_stop_sequence", pa.uint32()),
    pa.field("stop_id",               pa.string()),
    pa.field("current_status",        pa.int8()),
    pa.field("timestamp",             TIMESTAMP_TYPE, nullable=False),
    pa.field("congestion_level",      pa.int8()),
    pa.field("occupancy_status",      pa.int8()),
    pa.field("vehicle_id",            pa.string()),
    pa.field("vehicle_label",         pa.string()),
    pa.field("license_plate",         pa.string()),
])

COLS: tuple[str, ...] = tuple(f.name for f in ARCHIVE_SCHEMA)

# low-cardinality identifiers -> dictionary pages; timestamps -> delta encoding
DICTIONARY_COLS: tuple[str, ...] = tuple(f.name for f in ARCHIVE_SCHEMA if pa.types.is_string(f.type))
DELTA_COLS: tuple[str, ...] = ("start_time", "timestamp")

_MS_PER_S = 1000


def _seconds_to_ms(values: list[int | None]) -> list[int | None]:
    return [None if v is None else v * _MS_PER_S for v in values]


def empty_columns() -> dict[str, list]:
    return {name: [] for name in COLS}


# ---------------------------- column buffer -----------------------------------

class PositionColumns:
    """Column-major accumulation of records, converted to Arrow in one go."""

    __slots__ = ("cols",)

    def __init__(self) -> None:
        self.cols = empty_columns()

    def append(self, rec: VehiclePositionRecord) -> None:
        for name in COLS:
            self.cols[name].append(getattr(rec, name))

    def size(self) -> int:
        return len(self.cols["timestamp"])

    def to_arrow_table(self) -> pa.Table:
        arrays = []
        for f in ARCHIVE_SCHEMA:
            values = self.cols[f.name]
            if f.name in DELTA_COLS:
                values = _seconds_to_ms(values)
            arrays.append(pa.array(values, type=f.type))
        return pa.Table.from_arrays(arrays, schema=ARCHIVE_SCHEMA)
