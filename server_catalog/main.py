from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console

from server_catalog.config import get_settings
from server_catalog.importer import CatalogImportError
from server_catalog.reporter import (
    import_progress,
    print_filter_options,
    print_import_summary,
    print_query_result,
    print_record,
)
from server_catalog.service import CatalogService, available_backends, build_service
from server_catalog.store import PostgresCatalogStore
from server_catalog.utils.logging import configure_logging
from server_catalog.utils.profiler import profile_block

app = typer.Typer(help="Server catalog: spreadsheet import and filtered search.")
console = Console()


def _service(backend: Optional[str]) -> CatalogService:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return build_service(settings, backend=backend)


BackendOption = typer.Option(
    None,
    "--backend",
    "-b",
    help="Storage backend (memory, postgres). Defaults to CATALOG_BACKEND.",
)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"backend={settings.catalog_backend} (available: {', '.join(available_backends())}) | "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"seed={settings.catalog_seed_path} cache_ttl={settings.cache_ttl_seconds}s "
        f"batch={settings.import_batch_size}"
    )


@app.command("init-db")
def init_db() -> None:
    """
    Create the PostgreSQL table and indexes if they do not exist.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    store = PostgresCatalogStore()
    try:
        store.create_schema()
    finally:
        store.close()
    typer.echo("Schema ready.")


@app.command()
def seed(
    path: Optional[Path] = typer.Argument(None, help="Seed JSON file (defaults to CATALOG_SEED_PATH)."),
    backend: Optional[str] = BackendOption,
) -> None:
    """
    Load the JSON seed file into the catalog.
    """
    service = _service(backend)
    try:
        count = service.load_seed(path)
    finally:
        service.close()
    typer.echo(f"Loaded {count} seed entries.")


@app.command("import")
def import_(
    file: Path = typer.Argument(..., help="Spreadsheet to import (.xlsx, .xlsm or .csv)."),
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        "-n",
        min=1,
        help="Rows processed between flushes (default from IMPORT_BATCH_SIZE).",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d", help="Run without persisting changes (preview mode)."
    ),
    backend: Optional[str] = BackendOption,
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
) -> None:
    """
    Import servers from a spreadsheet, updating existing records and creating new ones.

    Records are matched by Model + Location + HDD.
    """
    service = _service(backend)
    settings = service.settings
    try:
        total = service.estimate_rows(file)
        if dry_run:
            console.print("[bold yellow]DRY RUN MODE - no changes will be persisted[/bold yellow]")
        console.print(
            f"File: [green]{file}[/green] | Batch size: "
            f"[green]{batch_size or settings.import_batch_size}[/green] | Rows: [green]{total}[/green]"
        )
        with profile_block(f"import {file.name}") as stats:
            with import_progress(total, console=console) as progress:
                summary = service.import_file(
                    file, batch_size=batch_size, dry_run=dry_run, progress=progress
                )
    except CatalogImportError as exc:
        console.print(f"[bold red]Import failed:[/bold red] {exc}")
        raise typer.Exit(code=1)
    finally:
        service.close()

    if as_json:
        typer.echo(json.dumps(summary.as_dict(), indent=2))
    else:
        print_import_summary(summary, stats, console=console)


@app.command()
def search(
    storage: Optional[List[str]] = typer.Option(None, "--storage", "-s", help="Storage bucket, e.g. 1TB-2TB."),
    ram: Optional[List[str]] = typer.Option(None, "--ram", "-r", help="RAM size, e.g. 16GB."),
    disk_type: Optional[str] = typer.Option(None, "--disk-type", help="SAS, SATA or SSD."),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    price_min: Optional[str] = typer.Option(None, "--price-min"),
    price_max: Optional[str] = typer.Option(None, "--price-max"),
    sort: str = typer.Option("price", "--sort", help="price, ram, storage or model."),
    order: str = typer.Option("asc", "--order", help="asc or desc."),
    page: int = typer.Option(1, "--page", "-p"),
    limit: Optional[int] = typer.Option(None, "--limit"),
    backend: Optional[str] = BackendOption,
    as_json: bool = typer.Option(False, "--json", help="Print the page as JSON."),
) -> None:
    """
    Query the catalog with filters, sorting and pagination.
    """
    params: Dict[str, Any] = {
        "storage": storage,
        "ram": ram,
        "diskType": disk_type,
        "location": location,
        "priceMin": price_min,
        "priceMax": price_max,
        "sort": sort,
        "order": order,
        "page": page,
        "limit": limit,
    }
    service = _service(backend)
    try:
        query = service.normalize(params)
        result = service.query(query)
    finally:
        service.close()

    if as_json:
        payload = {
            "data": [
                {**record.model_dump(mode="json"), "formattedPrice": record.formatted_price}
                for record in result.records
            ],
            "meta": {**result.meta(), "sort": query.sort, "order": query.order},
            "filters": query.filters.as_dict(),
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        print_query_result(result, console=console)


@app.command()
def filters(backend: Optional[str] = BackendOption) -> None:
    """
    List the available filter values.
    """
    service = _service(backend)
    try:
        options = service.filter_options()
    finally:
        service.close()
    print_filter_options(options, console=console)


@app.command()
def show(record_id: int = typer.Argument(..., help="Server id."), backend: Optional[str] = BackendOption) -> None:
    """
    Show a single server.
    """
    service = _service(backend)
    try:
        record = service.get(record_id)
    finally:
        service.close()
    if record is None:
        console.print(f"[red]Server {record_id} not found.[/red]")
        raise typer.Exit(code=1)
    print_record(record, console=console)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
