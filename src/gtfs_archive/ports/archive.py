# gtfs_archive/ports/archive.py
from __future__ import annotations

from typing import Iterator, Protocol

import pyarrow as pa

from ..domain.columns import PositionColumns
from ..domain.value_types import Watermarks


class PartitionReader(Protocol):
    """Port for an existing partition file that can be read more than once."""

    @property
    def num_rows(self) -> int:
        """Total rows in the file, as recorded in its metadata."""

    def watermarks(self) -> Watermarks:
        """One full pass: latest timestamp per non-empty vehicle id."""

    def rewind(self) -> None:
        """Reset so the next pass starts from the first row."""

    def iter_batches(self, batch_size: int) -> Iterator[pa.RecordBatch]:
        """Stream every row verbatim, in file order."""

    def close(self) -> None: ...


class PartitionWriter(Protocol):
    """Port for the staging output of one partition merge."""

    def write_columns(self, cols: PositionColumns) -> int:
        """Write one batch as a row group; return the number of rows written."""

    def copy_from(self, reader: PartitionReader, batch_size: int) -> int:
        """Stream every row of `reader` unmodified; return the number of rows copied."""

    def close(self) -> None:
        """Flush footers and close the file; the file is complete afterwards."""
