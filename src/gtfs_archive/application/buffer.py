from __future__ import annotations

from ..domain.columns import PositionColumns
from ..domain.models import VehiclePositionRecord
from ..errors import ArchiveInvariantError
from ..ports.archive import PartitionWriter

ROW_GROUP_SIZE = 1_000_000


class RowGroupBuffer:
    """
    Accumulates records and hands them to the writer one full row group at a time.
    Holds at most `capacity` records.
    """
    def __init__(self, writer: PartitionWriter, *, capacity: int = ROW_GROUP_SIZE) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.writer = writer
        self.capacity = capacity
        self.buf = PositionColumns()
        self.flushed = 0

    def __len__(self) -> int:
        return self.buf.size()

    def append(self, rec: VehiclePositionRecord) -> None:
        self.buf.append(rec)
        if self.buf.size() >= self.capacity:
            self.flush()

    def flush(self) -> int:
        """Write whatever is buffered (possibly nothing) and reset."""
        expected = self.buf.size()
        n = self.writer.write_columns(self.buf)
        if n != expected:
            raise ArchiveInvariantError(
                f"expected to write {expected} parquet rows, wrote {n}",
                expected=expected, actual=n,
            )
        self.buf = PositionColumns()
        self.flushed += n
        return n
