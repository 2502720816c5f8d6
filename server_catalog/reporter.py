from __future__ import annotations

import contextlib
from typing import Generator, Optional

from rich import box
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from server_catalog.domain.models import CatalogRecord, FilterOptions, ImportSummary, QueryResult
from server_catalog.importer import ProgressCallback
from server_catalog.utils.profiler import ProfileStats

MAX_LISTED_ERRORS = 10


@contextlib.contextmanager
def import_progress(
    total: int, console: Optional[Console] = None
) -> Generator[ProgressCallback, None, None]:
    """
    Rich progress bar driven by the importer's progress callback.
    """
    progress = Progress(
        TextColumn("[bold blue]Import"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TextColumn("{task.description}"),
        console=console,
        transient=False,
    )
    task_id = progress.add_task("Starting...", total=total or None)

    def _update(current: int, estimate: int, message: str) -> None:
        progress.update(task_id, completed=current, total=estimate or None, description=message)

    with progress:
        yield _update


def print_import_summary(
    summary: ImportSummary,
    stats: Optional[ProfileStats] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render import counts, the first errors and optional run profile.
    """
    console = console or Console()

    title = "Import Preview (dry run)" if summary.dry_run else "Import Summary"
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Count", justify="right", style="magenta")
    table.add_row("Created", str(summary.created))
    table.add_row("Updated", str(summary.updated))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Errors", str(len(summary.errors)))
    if stats is not None:
        table.add_row("Duration (s)", f"{stats.duration_seconds:.2f}")
        peak = stats.peak_rss_mb
        table.add_row("Peak Memory (MB)", f"{peak:.2f}" if peak is not None else "N/A")
    console.print(table)

    if summary.errors:
        console.print("[yellow]The following errors occurred:[/yellow]")
        for error in summary.errors[:MAX_LISTED_ERRORS]:
            console.print(f"  • {error}")
        remaining = len(summary.errors) - MAX_LISTED_ERRORS
        if remaining > 0:
            console.print(f"  ... and {remaining} more errors")

    if summary.dry_run:
        console.print("[dim]This was a dry run. Run without --dry-run to persist changes.[/dim]")


def _record_row(record: CatalogRecord) -> list[str]:
    return [
        str(record.id),
        record.model,
        f"{record.ram_size_gb} GB",
        f"{record.storage_total_gb:,} GB",
        record.disk_type.value,
        record.location,
        record.formatted_price,
    ]


def print_query_result(result: QueryResult, console: Optional[Console] = None) -> None:
    console = console or Console()

    if not result.records:
        console.print("[yellow]No servers match the selected filters.[/yellow]")
        return

    table = Table(
        title="Servers",
        box=box.ROUNDED,
        caption=(
            f"Page {result.page}/{result.total_pages} "
            f"({result.total} matches, {result.limit} per page)"
        ),
    )
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Model", style="cyan")
    table.add_column("RAM", justify="right", style="green")
    table.add_column("Storage", justify="right", style="green")
    table.add_column("Disk", style="blue")
    table.add_column("Location", style="magenta")
    table.add_column("Price", justify="right", style="bold yellow")
    for record in result.records:
        table.add_row(*_record_row(record))
    console.print(table)


def print_record(record: CatalogRecord, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title=f"Server #{record.id}", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("Model", record.model)
    table.add_row("RAM", f"{record.ram_raw} ({record.ram_size_gb} GB)")
    table.add_row("Storage", f"{record.storage_raw} ({record.storage_total_gb} GB, {record.disk_type.value})")
    table.add_row("Location", record.location)
    table.add_row("Price", f"{record.formatted_price} ({record.currency.value})")
    console.print(table)


def print_filter_options(options: FilterOptions, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Filter Options", box=box.ROUNDED)
    table.add_column("Filter", style="cyan", no_wrap=True)
    table.add_column("Values")
    table.add_row("storage", ", ".join(option["value"] for option in options["storage_ranges"]))
    table.add_row("ram", ", ".join(option["value"] for option in options["ram_options"]))
    table.add_row("diskType", ", ".join(options["disk_types"]))
    table.add_row("location", ", ".join(options["locations"]) or "[dim](none)[/dim]")
    console.print(table)
