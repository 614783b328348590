# gtfs_archive/ports/store.py
from __future__ import annotations

from typing import Iterator, Protocol
from ..domain.models import VehiclePositionRecord


class PositionStore(Protocol):
    """Port for the transactional store that ingestion appends to."""

    def archive_range(self) -> tuple[str, str] | None:
        """Return ('YYYY-MM', 'YYYY-MM') of the min/max valid timestamp, or None when empty."""

    def iter_positions(self, start_ts: int, end_ts: int) -> Iterator[VehiclePositionRecord]:
        """Stream records with start_ts <= timestamp < end_ts from one consistent snapshot."""
