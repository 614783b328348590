from __future__ import annotations
import logging
import os
from typing import Callable, Dict, Optional

from ..adapters.store_sqlite import SqlitePositionStore
from ..domain.models import MergeStats, PartitionKey
from ..ports.store import PositionStore
from .buffer import ROW_GROUP_SIZE
from .merge import merge_partition
from .planning import find_archive_range, iter_months

log = logging.getLogger(__name__)

OnPlanned   = Callable[[PartitionKey, PartitionKey], None]
OnPartition = Callable[[MergeStats], None]


def _empty_stats() -> Dict[str, int]:
    return {"partitions": 0, "rows_copied": 0, "rows_new": 0, "rows_skipped": 0}


def archive_partitions(
    store: PositionStore,
    archive_root: str,
    *,
    row_group_size: int = ROW_GROUP_SIZE,
    full_rescan: bool = False,
    on_planned: Optional[OnPlanned] = None,
    on_partition: Optional[OnPartition] = None,
) -> Dict[str, int]:
    """
    Merge every month between the store's oldest and newest valid record
    into the archive, oldest first. The first error stops the run.
    """
    log.info("archiving to %s", os.path.abspath(archive_root))
    stats = _empty_stats()

    bounds = find_archive_range(store)
    if bounds is None:
        log.info("no valid records in store; nothing to archive")
        return stats
    start, end = bounds
    log.info("creating partitions from %s to %s", start.label(), end.label())
    if on_planned is not None:
        on_planned(start, end)

    for key in iter_months(start, end):
        log.info("writing partition for %s", key.label())
        res = merge_partition(store, archive_root, key, row_group_size=row_group_size, full_rescan=full_rescan)
        stats["partitions"] += 1
        stats["rows_copied"] += res.copied
        stats["rows_new"] += res.new
        stats["rows_skipped"] += res.skipped
        if on_partition is not None:
            on_partition(res)
    return stats


def archive_store(
    db_path: str,
    archive_root: str,
    *,
    row_group_size: int = ROW_GROUP_SIZE,
    full_rescan: bool = False,
    on_planned: Optional[OnPlanned] = None,
    on_partition: Optional[OnPartition] = None,
) -> Dict[str, int]:
    """Open the SQLite store at `db_path` and archive it under `archive_root`."""
    with SqlitePositionStore(db_path) as store:
        return archive_partitions(
            store,
            archive_root,
            row_group_size=row_group_size,
            full_rescan=full_rescan,
            on_planned=on_planned,
            on_partition=on_partition,
        )
