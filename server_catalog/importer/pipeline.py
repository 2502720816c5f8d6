"""
Batched spreadsheet importer.

Flow for one run:

    validate + open source -> resolve header -> stream rows
        -> per row: extract, skip if empty, parse, classify, stage
        -> every `batch_size` processed rows: flush staged writes, report progress
    -> final flush -> summary

Rows are matched to existing records by natural key (model, location, storage
text), so re-running an unchanged file only produces updates. A row that fails
is recorded in `ImportSummary.errors` and the run continues; problems with the
file itself abort the run before anything is written.

Usage:
    from server_catalog.importer import import_catalog

    summary = import_catalog("servers.xlsx", store, batch_size=200, dry_run=True)
    print(summary.created, summary.updated, summary.skipped)
"""

from __future__ import annotations

import os
from typing import Callable, Dict, Optional, Sequence, Set

from pydantic import ValidationError

from server_catalog.config import get_settings
from server_catalog.domain.models import ImportSummary, NaturalKey, ServerListing, UpsertOutcome
from server_catalog.importer.sources import HeaderResolutionError, open_source
from server_catalog.parsing import parse_listing
from server_catalog.store.abstract import CatalogStore
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]

COLUMN_MODEL = "model"
COLUMN_RAM = "ram"
COLUMN_STORAGE = "storage"
COLUMN_LOCATION = "location"
COLUMN_PRICE = "price"

REQUIRED_COLUMNS = (COLUMN_MODEL, COLUMN_RAM, COLUMN_STORAGE, COLUMN_PRICE)
ALL_COLUMNS = (COLUMN_MODEL, COLUMN_RAM, COLUMN_STORAGE, COLUMN_LOCATION, COLUMN_PRICE)

HEADER_SYNONYMS: Dict[str, str] = {
    "model": COLUMN_MODEL,
    "server model": COLUMN_MODEL,
    "ram": COLUMN_RAM,
    "memory": COLUMN_RAM,
    "hdd": COLUMN_STORAGE,
    "storage": COLUMN_STORAGE,
    "hard disk": COLUMN_STORAGE,
    "location": COLUMN_LOCATION,
    "datacenter": COLUMN_LOCATION,
    "price": COLUMN_PRICE,
    "cost": COLUMN_PRICE,
}


def resolve_columns(header: Sequence[str]) -> Dict[str, int]:
    """
    Map semantic columns to header positions using HEADER_SYNONYMS.

    Raises
    ------
    HeaderResolutionError
        If none of model, ram, storage or price can be found.
    """
    columns: Dict[str, int] = {}
    for index, name in enumerate(header):
        column = HEADER_SYNONYMS.get(name.strip().lower())
        if column is not None and column not in columns:
            columns[column] = index

    if not any(column in columns for column in REQUIRED_COLUMNS):
        raise HeaderResolutionError(
            "Could not parse header row. Expected columns: Model, RAM, HDD, Location, Price"
        )
    missing = [column for column in REQUIRED_COLUMNS if column not in columns]
    if missing:
        log.warning("Header is missing columns; they will be read as empty", extra={"missing": missing})
    return columns


def extract_fields(cells: Sequence[str], columns: Dict[str, int]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for column in ALL_COLUMNS:
        index = columns.get(column)
        fields[column] = cells[index] if index is not None and index < len(cells) else ""
    return fields


def is_empty_row(fields: Dict[str, str]) -> bool:
    return not (fields[COLUMN_MODEL] or fields[COLUMN_STORAGE] or fields[COLUMN_PRICE])


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(error["msg"] for error in exc.errors())
    return str(exc) or type(exc).__name__


class ImportPipeline:
    """
    One import run against a store.

    Parameters
    ----------
    store : CatalogStore
        Target store. Pass a `CachedCatalogStore` to have each flushed batch
        invalidate the query cache.
    batch_size : int, optional
        Processed rows per flush. Defaults to settings.import_batch_size.
    dry_run : bool
        Run the whole parse/match/decide logic without writing.
    progress : callable, optional
        Called as progress(processed, total_estimate, message) at start, after
        each batch and at the end. Its failures are logged and ignored.
    """

    def __init__(
        self,
        store: CatalogStore,
        batch_size: Optional[int] = None,
        dry_run: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.store = store
        self.batch_size = batch_size or get_settings().import_batch_size
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        self.dry_run = dry_run
        self.progress = progress
        self._pending: Dict[NaturalKey, ServerListing] = {}
        self._seen: Set[NaturalKey] = set()

    def _notify(self, current: int, total: int, message: str) -> None:
        if self.progress is None:
            return
        try:
            self.progress(current, total, message)
        except Exception:  # noqa: BLE001
            log.warning("Progress callback failed", exc_info=True)

    def _classify(self, key: NaturalKey) -> UpsertOutcome:
        if key in self._pending or key in self._seen:
            return "updated"
        if self.store.find_by_natural_key(*key) is not None:
            return "updated"
        return "created"

    def _stage(self, listing: ServerListing) -> UpsertOutcome:
        key = listing.natural_key
        outcome = self._classify(key)
        self._pending[key] = listing
        if self.dry_run:
            self._seen.add(key)
        return outcome

    def _flush(self) -> None:
        if self._pending and not self.dry_run:
            self.store.upsert_batch(list(self._pending.values()))
            log.debug("Batch flushed", extra={"rows": len(self._pending)})
        self._pending = {}

    def run(self, path: str | os.PathLike[str]) -> ImportSummary:
        """
        Import every row of the file at `path`.

        Raises
        ------
        CatalogImportError
            Unsupported, missing or unreadable file, or unusable header.
        """
        summary = ImportSummary(dry_run=self.dry_run)
        self._pending = {}
        self._seen = set()

        with open_source(path) as source:
            total = summary.total_rows = source.estimate_data_rows()
            rows = source.rows()
            header = next(rows, None)
            if header is None:
                raise HeaderResolutionError(f"File has no header row: {path}")
            columns = resolve_columns(header[1])

            log.info(
                "Import started",
                extra={"path": str(path), "rows": total, "batch_size": self.batch_size, "dry_run": self.dry_run},
            )
            self._notify(0, total, f"Starting import of {total} rows...")

            batch_count = 0
            for row_number, cells in rows:
                try:
                    fields = extract_fields(cells, columns)
                    if is_empty_row(fields):
                        summary.skipped += 1
                        continue
                    outcome = self._stage(parse_listing(**fields))
                except Exception as exc:  # noqa: BLE001
                    message = _describe(exc)
                    summary.errors.append(f"Row {row_number}: {message}")
                    summary.skipped += 1
                    log.warning("Row rejected", extra={"row": row_number, "error": message})
                    continue

                if outcome == "created":
                    summary.created += 1
                else:
                    summary.updated += 1
                summary.processed += 1
                batch_count += 1

                if batch_count >= self.batch_size:
                    self._flush()
                    batch_count = 0
                    self._notify(
                        summary.processed, total, f"Processed {summary.processed}/{total} rows..."
                    )

            self._flush()

        self._seen = set()
        self._notify(summary.processed, total, "Import complete!")
        log.info(
            "Import finished",
            extra={
                "created": summary.created,
                "updated": summary.updated,
                "skipped": summary.skipped,
                "errors": len(summary.errors),
                "dry_run": self.dry_run,
            },
        )
        return summary


def import_catalog(
    path: str | os.PathLike[str],
    store: CatalogStore,
    batch_size: Optional[int] = None,
    dry_run: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> ImportSummary:
    """Convenience wrapper: build an ImportPipeline and run it once."""
    pipeline = ImportPipeline(store, batch_size=batch_size, dry_run=dry_run, progress=progress)
    return pipeline.run(path)


__all__ = [
    "HEADER_SYNONYMS",
    "ImportPipeline",
    "ProgressCallback",
    "REQUIRED_COLUMNS",
    "extract_fields",
    "import_catalog",
    "is_empty_row",
    "resolve_columns",
]
