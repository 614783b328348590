from __future__ import annotations
import logging
import os
from typing import Iterator

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from ..domain.columns import ARCHIVE_SCHEMA, DELTA_COLS, DICTIONARY_COLS, TIMESTAMP_TYPE, PositionColumns
from ..domain.models import PartitionKey
from ..domain.value_types import EpochSeconds, VehicleId, Watermarks
from ..errors import ArchiveIOError, RecordCodecError
from ..ports.archive import PartitionReader

log = logging.getLogger(__name__)

FILE_NAME = "vehicle_positions.parquet"
STAGING_SUFFIX = ".tmp"
_MS_PER_S = 1000


def partition_path(archive_root: str, key: PartitionKey) -> str:
    return os.path.join(archive_root, key.relative_dir(), FILE_NAME)


def staging_path(final_path: str) -> str:
    return final_path + STAGING_SUFFIX


def replace_partition(staging: str, final: str) -> None:
    """Promote the staging file. Atomic only while both paths share a filesystem."""
    try:
        os.replace(staging, final)
    except OSError as e:
        raise ArchiveIOError(f"cannot replace {final}: {e}", path=final) from e


def _fsync(path: str) -> None:
    with open(path, "rb") as f:
        os.fsync(f.fileno())


class ParquetPartitionReader:
    """
    Existing partition file. Supports one watermark pass, a rewind,
    and one verbatim copy pass.
    """
    def __init__(self, path: str) -> None:
        self.path = path
        self._pf = self._open()

    def _open(self) -> pq.ParquetFile:
        try:
            return pq.ParquetFile(self.path)
        except OSError as e:
            raise ArchiveIOError(f"cannot open {self.path}: {e}", path=self.path) from e
        except pa.ArrowException as e:
            raise RecordCodecError(f"unreadable parquet file {self.path}: {e}") from e

    @property
    def num_rows(self) -> int:
        return self._pf.metadata.num_rows

    def watermarks(self) -> Watermarks:
        marks: Watermarks = {}
        try:
            for batch in self._pf.iter_batches(columns=["vehicle_id", "timestamp"]):
                vid = batch.column("vehicle_id")
                keep = pc.and_kleene(pc.is_valid(vid), pc.not_equal(vid, ""))
                tbl = pa.Table.from_batches([batch]).filter(keep)
                if tbl.num_rows == 0:
                    continue
                ts_idx = tbl.schema.get_field_index("timestamp")
                tbl = tbl.set_column(ts_idx, "timestamp", pc.cast(tbl["timestamp"], TIMESTAMP_TYPE))
                agg = tbl.group_by("vehicle_id").aggregate([("timestamp", "max")])
                latest_ms = pc.cast(agg["timestamp_max"], pa.int64()).to_pylist()
                for v, ms in zip(agg["vehicle_id"].to_pylist(), latest_ms):
                    ts = EpochSeconds(ms // _MS_PER_S)
                    prev = marks.get(VehicleId(v))
                    if prev is None or ts > prev:
                        marks[VehicleId(v)] = ts
        except OSError as e:
            raise ArchiveIOError(f"read failed on {self.path}: {e}", path=self.path) from e
        except pa.ArrowException as e:
            raise RecordCodecError(f"bad rows in {self.path}: {e}") from e
        return marks

    def rewind(self) -> None:
        self._pf.close()
        self._pf = self._open()

    def iter_batches(self, batch_size: int) -> Iterator[pa.RecordBatch]:
        try:
            yield from self._pf.iter_batches(batch_size=batch_size)
        except OSError as e:
            raise ArchiveIOError(f"read failed on {self.path}: {e}", path=self.path) from e
        except pa.ArrowException as e:
            raise RecordCodecError(f"bad rows in {self.path}: {e}") from e

    def close(self) -> None:
        self._pf.close()

    def __enter__(self) -> "ParquetPartitionReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ParquetPartitionWriter:
    """
    Staging output for one partition: zstd, dictionary pages for identifiers,
    delta-encoded timestamps, one row group per buffer flush.
    """
    def __init__(self, path: str, *, row_group_size: int, codec: str = "zstd") -> None:
        self.path = path
        self.row_group_size = row_group_size
        self.rows_written = 0
        self._closed = False
        try:
            self._writer = pq.ParquetWriter(
                path,
                ARCHIVE_SCHEMA,
                compression=codec,
                use_dictionary=list(DICTIONARY_COLS),
                column_encoding={c: "DELTA_BINARY_PACKED" for c in DELTA_COLS},
            )
        except OSError as e:
            raise ArchiveIOError(f"cannot create {path}: {e}", path=path) from e

    def _write_table(self, table: pa.Table) -> int:
        if table.num_rows == 0:
            return 0
        try:
            self._writer.write_table(table, row_group_size=self.row_group_size)
        except OSError as e:
            raise ArchiveIOError(f"write failed on {self.path}: {e}", path=self.path) from e
        except pa.ArrowException as e:
            raise RecordCodecError(f"cannot encode rows for {self.path}: {e}") from e
        self.rows_written += table.num_rows
        return table.num_rows

    def write_columns(self, cols: PositionColumns) -> int:
        try:
            table = cols.to_arrow_table()
        except (pa.ArrowException, TypeError) as e:
            raise RecordCodecError(f"cannot encode rows for {self.path}: {e}") from e
        return self._write_table(table)

    def copy_from(self, reader: PartitionReader, batch_size: int) -> int:
        copied = 0
        for batch in reader.iter_batches(batch_size):
            table = pa.Table.from_batches([batch])
            if not table.schema.equals(ARCHIVE_SCHEMA):
                try:
                    table = table.cast(ARCHIVE_SCHEMA)
                except (pa.ArrowException, ValueError) as e:
                    raise RecordCodecError(f"existing rows do not fit the archive schema: {e}") from e
            copied += self._write_table(table)
        return copied

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._writer.close()
            _fsync(self.path)
        except OSError as e:
            raise ArchiveIOError(f"cannot finalize {self.path}: {e}", path=self.path) from e
        log.debug("closed %s (rows=%d)", self.path, self.rows_written)

    def __enter__(self) -> "ParquetPartitionWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
