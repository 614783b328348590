from __future__ import annotations
import calendar
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from .value_types import EpochSeconds, VehicleId

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(slots=True, frozen=True)
class VehiclePositionRecord:
    """One vehicle observation as produced by the feed ingestor.

    `start_time` and `timestamp` are epoch seconds; everything but `timestamp`
    may be missing from the feed.
    """
    timestamp: int
    trip_id: Optional[str] = None
    route_id: Optional[str] = None
    direction_id: Optional[int] = None
    start_time: Optional[int] = None
    schedule_relationship: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bearing: Optional[float] = None
    odometer: Optional[float] = None
    speed: Optional[float] = None
    current_stop_sequence: Optional[int] = None
    stop_id: Optional[str] = None
    current_status: Optional[int] = None
    congestion_level: Optional[int] = None
    occupancy_status: Optional[int] = None
    vehicle_id: Optional[VehicleId] = None
    vehicle_label: Optional[str] = None
    license_plate: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.timestamp > 0


@dataclass(slots=True, frozen=True, order=True)
class PartitionKey:
    """A calendar month in UTC: the window [period_start, period_end)."""
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")

    @classmethod
    def from_timestamp(cls, ts: int) -> PartitionKey:
        dt = _EPOCH + timedelta(seconds=ts)
        return cls(dt.year, dt.month)

    @classmethod
    def from_year_month(cls, ym: str) -> PartitionKey:
        """Parse 'YYYY-MM'."""
        y, sep, m = ym.partition("-")
        if not sep or len(y) != 4 or len(m) != 2:
            raise ValueError(f"not a YYYY-MM value: {ym!r}")
        return cls(int(y), int(m))

    def next(self) -> PartitionKey:
        if self.month == 12:
            return PartitionKey(self.year + 1, 1)
        return PartitionKey(self.year, self.month + 1)

    @property
    def period_start(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)

    @property
    def period_end(self) -> datetime:
        return self.next().period_start

    @property
    def start_ts(self) -> EpochSeconds:
        return EpochSeconds(calendar.timegm(self.period_start.utctimetuple()))

    @property
    def end_ts(self) -> EpochSeconds:
        return self.next().start_ts

    def contains(self, ts: int) -> bool:
        return self.start_ts <= ts < self.end_ts

    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def relative_dir(self) -> str:
        return os.path.join(f"year={self.year:04d}", f"month={self.month:02d}")


@dataclass(slots=True)
class MergeStats:
    partition: PartitionKey
    path: str
    existing_rows: int = 0
    copied: int = 0
    new: int = 0
    skipped: int = 0
    vehicles: int = 0          # vehicles with a watermark in the existing file
    query_from: int = 0        # epoch seconds, inclusive
