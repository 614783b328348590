from __future__ import annotations

import pytest

from gtfs_archive.application.buffer import RowGroupBuffer
from gtfs_archive.domain.columns import PositionColumns
from gtfs_archive.errors import ArchiveInvariantError


class RecordingWriter:
    """Keeps the size of every batch it is handed."""

    def __init__(self, lose: int = 0) -> None:
        self.batches: list[int] = []
        self.lose = lose

    def write_columns(self, cols: PositionColumns) -> int:
        self.batches.append(cols.size())
        return max(cols.size() - self.lose, 0)

    def copy_from(self, reader, batch_size):
        raise NotImplementedError

    def close(self) -> None:
        pass


def test_flushes_each_full_row_group(record) -> None:
    w = RecordingWriter()
    buf = RowGroupBuffer(w, capacity=3)
    for i in range(7):
        buf.append(record("V1", 1000 + i))
    assert w.batches == [3, 3]
    assert len(buf) == 1
    assert buf.flush() == 1
    assert w.batches == [3, 3, 1]
    assert buf.flushed == 7
    assert len(buf) == 0


def test_final_flush_writes_empty_batch(record) -> None:
    w = RecordingWriter()
    buf = RowGroupBuffer(w, capacity=2)
    buf.append(record("V1", 1))
    buf.append(record("V1", 2))
    assert buf.flush() == 0
    assert w.batches == [2, 0]


def test_short_write_is_an_invariant_violation(record) -> None:
    buf = RowGroupBuffer(RecordingWriter(lose=1), capacity=2)
    buf.append(record("V1", 1))
    with pytest.raises(ArchiveInvariantError) as exc:
        buf.append(record("V1", 2))
    assert (exc.value.expected, exc.value.actual) == (2, 1)


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RowGroupBuffer(RecordingWriter(), capacity=0)
