from __future__ import annotations
from typing import Iterator
from ..domain.models import PartitionKey
from ..errors import ArchiveDiscoveryError
from ..ports.store import PositionStore


def find_archive_range(store: PositionStore) -> tuple[PartitionKey, PartitionKey] | None:
    """Months holding the earliest and latest valid records, or None for an empty store."""
    bounds = store.archive_range()
    if bounds is None:
        return None
    min_ym, max_ym = bounds
    try:
        start, end = PartitionKey.from_year_month(min_ym), PartitionKey.from_year_month(max_ym)
    except (TypeError, ValueError) as e:
        raise ArchiveDiscoveryError(f"bad archive range {bounds!r}: {e}") from e
    if end < start:
        raise ArchiveDiscoveryError(f"archive range ends before it starts: {min_ym}..{max_ym}")
    return start, end


def iter_months(start: PartitionKey, end: PartitionKey) -> Iterator[PartitionKey]:
    """Every month from start to end, inclusive."""
    k = start
    while k <= end:
        yield k
        k = k.next()
