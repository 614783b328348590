import logging
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    Progress, BarColumn, TextColumn, TimeElapsedColumn,
    MofNCompleteColumn, SpinnerColumn
)

from .adapters.store_sqlite import SqlitePositionStore
from .application.buffer import ROW_GROUP_SIZE
from .application.planning import find_archive_range
from .application.use_cases import archive_store
from .config import load_config
from .domain.models import MergeStats, PartitionKey
from .errors import ArchiveError, ArchiveInvariantError

console = Console()
log = logging.getLogger("gtfs_archive")

EXIT_INVARIANT = 70


class InvariantViolation(click.ClickException):
    """Row counts disagreed; the archive may be corrupt."""
    exit_code = EXIT_INVARIANT


def _setup_logging(verbose: int) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _resolve_db(config_path: str | None, db: str | None) -> str:
    return db or load_config(config_path).store_path


def _months_between(start: PartitionKey, end: PartitionKey) -> int:
    return (end.year - start.year) * 12 + end.month - start.month + 1


@click.group()
@click.option("-v", "--verbose", count=True, help="Also show debug logs")
def cli(verbose):
    """gtfs-archive: month-partitioned Parquet archive of GTFS-realtime vehicle positions."""
    _setup_logging(verbose)


@cli.command("archive")
@click.option("--config", "config_path", type=str, default=None, help="Config file (default: gtfs-scraper.json)")
@click.option("--db", type=str, default=None, help="SQLite store (default: <DataDir>/realtime.db)")
@click.option("--archive-dir", type=str, default=None, help="Archive root (default: <DataDir>/archive)")
@click.option("--row-group-size", type=click.IntRange(min=1), default=ROW_GROUP_SIZE, show_default=True,
              help="Rows buffered per Parquet row group")
@click.option("--full-rescan/--no-full-rescan", default=False, show_default=True,
              help="Rescan each month from its first day instead of the oldest watermark")
def archive_cmd(config_path, db, archive_dir, row_group_size, full_rescan):
    """Merge new store rows into the monthly Parquet partitions."""
    try:
        if not (db and archive_dir):
            cfg = load_config(config_path)
            db = db or cfg.store_path
            archive_dir = archive_dir or cfg.archive_dir

        progress = Progress(SpinnerColumn(),
                            TextColumn("[bold]archiving[/]"),
                            BarColumn(),
                            MofNCompleteColumn(),
                            TextColumn("•"),
                            TimeElapsedColumn(),
                            TextColumn(" • {task.description}"),
                            console=console,
                            transient=False,
                            expand=True,
                            )
        with progress:
            task = progress.add_task(description="finding range", total=None)

            def on_planned(start: PartitionKey, end: PartitionKey) -> None:
                progress.update(task, total=_months_between(start, end),
                                description=f"{start.label()}..{end.label()}")

            def on_partition(res: MergeStats) -> None:
                progress.update(task, advance=1,
                                description=f"{res.partition.label()} +{res.new} new, {res.skipped} skipped")

            stats = archive_store(db, archive_dir, row_group_size=row_group_size, full_rescan=full_rescan,
                                  on_planned=on_planned, on_partition=on_partition)
    except ArchiveInvariantError as e:
        log.critical("%s", e)
        raise InvariantViolation(str(e))
    except ArchiveError as e:
        raise click.ClickException(str(e))

    if stats["partitions"] == 0:
        console.print("[bold]done[/]: no valid records in store, nothing archived")
        return
    console.print(
        f"[bold]summary[/]: "
        f"partitions={stats['partitions']}  "
        f"[cyan]copied[/]={stats['rows_copied']}  "
        f"[green]new[/]={stats['rows_new']}  "
        f"[yellow]skipped[/]={stats['rows_skipped']}"
    )


@cli.command("range")
@click.option("--config", "config_path", type=str, default=None, help="Config file (default: gtfs-scraper.json)")
@click.option("--db", type=str, default=None, help="SQLite store (default: <DataDir>/realtime.db)")
def range_cmd(config_path, db):
    """Show the month range the next archive run would cover."""
    try:
        with SqlitePositionStore(_resolve_db(config_path, db)) as store:
            bounds = find_archive_range(store)
    except ArchiveError as e:
        raise click.ClickException(str(e))
    if bounds is None:
        console.print("no valid records in store")
        return
    start, end = bounds
    console.print(f"{start.label()} .. {end.label()} ({_months_between(start, end)} months)")


@cli.command("init-db")
@click.option("--config", "config_path", type=str, default=None, help="Config file (default: gtfs-scraper.json)")
@click.option("--db", type=str, default=None, help="SQLite store (default: <DataDir>/realtime.db)")
def init_db_cmd(config_path, db):
    """Create the vehicle_positions table if it does not exist."""
    try:
        path = _resolve_db(config_path, db)
        with SqlitePositionStore(path, create=True) as store:
            store.ensure_schema()
    except ArchiveError as e:
        raise click.ClickException(str(e))
    console.print(f"store ready: {path}")


if __name__ == "__main__":
    cli()
