from __future__ import annotations

import contextlib
import logging
import os

from ..adapters.parquet_partition import (
    ParquetPartitionReader,
    ParquetPartitionWriter,
    partition_path,
    replace_partition,
    staging_path,
)
from ..domain.models import MergeStats, PartitionKey
from ..domain.value_types import Watermarks
from ..errors import ArchiveInvariantError, ArchiveIOError
from ..ports.store import PositionStore
from .buffer import ROW_GROUP_SIZE, RowGroupBuffer

log = logging.getLogger(__name__)


def query_start(key: PartitionKey, watermarks: Watermarks, *, full_rescan: bool = False) -> int:
    """
    First timestamp to rescan for `key`: the oldest watermark, else the period start.

    A vehicle missing from the existing file whose rows predate the oldest
    watermark falls outside this window; `full_rescan` always starts at the
    period start instead.
    """
    if full_rescan or not watermarks:
        return key.start_ts
    return min(watermarks.values())


def merge_partition(
    store: PositionStore,
    archive_root: str,
    key: PartitionKey,
    *,
    row_group_size: int = ROW_GROUP_SIZE,
    full_rescan: bool = False,
) -> MergeStats:
    """
    Bring one month's partition file up to date with the store.

    Existing rows are copied verbatim into a staging file, store rows newer
    than their vehicle's watermark are appended, and the staging file then
    replaces the partition. Without an existing file the partition is
    written in place.
    """
    ym = key.label()
    final = partition_path(archive_root, key)
    try:
        os.makedirs(os.path.dirname(final), exist_ok=True)
    except OSError as e:
        raise ArchiveIOError(f"cannot create {os.path.dirname(final)}: {e}", path=final) from e
    stats = MergeStats(partition=key, path=final)

    watermarks: Watermarks = {}
    reader: ParquetPartitionReader | None = None
    staging = final
    if os.path.exists(final):
        reader = ParquetPartitionReader(final)
        stats.existing_rows = reader.num_rows
        log.info("%s: found %d rows in existing file", ym, reader.num_rows)
        try:
            watermarks = reader.watermarks()
            reader.rewind()
        except BaseException:
            reader.close()
            raise
        stats.vehicles = len(watermarks)
        log.info("%s: found updates for %d vehicles", ym, len(watermarks))
        staging = staging_path(final)
    elif os.path.exists(staging_path(final)):
        stale = staging_path(final)
        log.warning("%s: removing stale staging file %s", ym, stale)
        try:
            os.remove(stale)
        except OSError as e:
            raise ArchiveIOError(f"cannot remove {stale}: {e}", path=stale) from e

    try:
        writer = ParquetPartitionWriter(staging, row_group_size=row_group_size)
        try:
            if reader is not None:
                stats.copied = writer.copy_from(reader, row_group_size)
                log.info("%s: copied %d rows from existing file", ym, stats.copied)
                if stats.copied != reader.num_rows:
                    raise ArchiveInvariantError(
                        f"{ym}: expected to copy {reader.num_rows} parquet rows, copied {stats.copied}",
                        expected=reader.num_rows, actual=stats.copied,
                    )

            stats.query_from = query_start(key, watermarks, full_rescan=full_rescan)
            log.info("%s: querying data from %d to %d", ym, stats.query_from, key.end_ts)
            buffer = RowGroupBuffer(writer, capacity=row_group_size)
            for rec in store.iter_positions(stats.query_from, key.end_ts):
                last = watermarks.get(rec.vehicle_id) if rec.vehicle_id else None
                # already represented by the copied rows
                if last is not None and rec.timestamp <= last:
                    stats.skipped += 1
                    continue
                buffer.append(rec)
                stats.new += 1
            buffer.flush()
        finally:
            writer.close()
    except BaseException:
        if reader is None:
            # a fresh partition is written in place; never leave half of it behind
            with contextlib.suppress(FileNotFoundError):
                os.remove(final)
        raise
    finally:
        if reader is not None:
            reader.close()

    log.info("%s: wrote %d new rows, skipped %d rows", ym, stats.new, stats.skipped)
    if staging != final:
        replace_partition(staging, final)
    return stats
