from __future__ import annotations

import pytest

from gtfs_archive.application.planning import find_archive_range, iter_months
from gtfs_archive.domain.models import PartitionKey
from gtfs_archive.errors import ArchiveDiscoveryError


class FakeStore:
    def __init__(self, bounds):
        self.bounds = bounds

    def archive_range(self):
        return self.bounds

    def iter_positions(self, start_ts, end_ts):
        return iter(())


def test_empty_store_has_no_range() -> None:
    assert find_archive_range(FakeStore(None)) is None


def test_range_parses_months() -> None:
    assert find_archive_range(FakeStore(("2023-11", "2024-02"))) == (PartitionKey(2023, 11), PartitionKey(2024, 2))


@pytest.mark.parametrize("bounds", [("2024-1", "2024-02"), ("2024-02", "garbage"), ("2024-03", "2024-01")])
def test_malformed_range_is_a_discovery_error(bounds) -> None:
    with pytest.raises(ArchiveDiscoveryError):
        find_archive_range(FakeStore(bounds))


def test_range_from_sqlite_store(store, record, ts) -> None:
    store.insert_positions([record("V1", ts(2024, 1, 15)), record("V1", ts(2024, 2, 3)), record("V9", 0)])
    assert find_archive_range(store) == (PartitionKey(2024, 1), PartitionKey(2024, 2))


def test_iter_months_inclusive_across_years() -> None:
    months = list(iter_months(PartitionKey(2023, 11), PartitionKey(2024, 2)))
    assert [m.label() for m in months] == ["2023-11", "2023-12", "2024-01", "2024-02"]


def test_iter_months_single() -> None:
    assert list(iter_months(PartitionKey(2024, 5), PartitionKey(2024, 5))) == [PartitionKey(2024, 5)]
