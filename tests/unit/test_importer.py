from __future__ import annotations

from decimal import Decimal
from typing import List, Tuple

import pytest

from server_catalog.cache import CachedCatalogStore, QueryCache
from server_catalog.domain.models import Currency, DiskType
from server_catalog.filters import normalize_query
from server_catalog.importer import (
    CatalogImportError,
    HeaderResolutionError,
    ImportPipeline,
    SourceNotFoundError,
    UnsupportedSourceError,
    import_catalog,
    resolve_columns,
)
from server_catalog.store import InMemoryCatalogStore

BATCH_SIZE = 2

SAMPLE_ROWS = [
    ["Dell R210Intel Xeon X3440", "16GBDDR3", "2x2TBSATA2", "AmsterdamAMS-01", "€49.99"],
    ["HP DL120G7Intel G850", "4GBDDR3", "4x1TBSATA2", "Washington D.C.WDC-01", "$39.99"],
    ["Dell R210-IIIntel Xeon E3-1230v2", "16GBDDR3", "4x480GBSSD", "SingaporeSIN-11", "S$565.99"],
]


class RecordingProgress:
    def __init__(self) -> None:
        self.calls: List[Tuple[int, int, str]] = []

    def __call__(self, current: int, total: int, message: str) -> None:
        self.calls.append((current, total, message))


class TestResolveColumns:
    def test_canonical_header(self):
        assert resolve_columns(["Model", "RAM", "HDD", "Location", "Price"]) == {
            "model": 0,
            "ram": 1,
            "storage": 2,
            "location": 3,
            "price": 4,
        }

    def test_synonyms_any_order_and_case(self):
        columns = resolve_columns(["COST", " Datacenter ", "hard disk", "Memory", "Server Model"])
        assert columns == {"price": 0, "location": 1, "storage": 2, "ram": 3, "model": 4}

    def test_first_duplicate_wins(self):
        assert resolve_columns(["Model", "Price", "Cost"])["price"] == 1

    def test_unrecognized_header_fails(self):
        with pytest.raises(HeaderResolutionError, match="Expected columns: Model, RAM, HDD, Location, Price"):
            resolve_columns(["foo", "bar", "Location"])


class TestImportRun:
    def test_sheet_with_empty_row_then_ram_query(self, memory_store, write_csv):
        rows = [
            ["A", "16GBDDR3", "2x2TBSATA2", "X", "49.99"],
            ["", "", "", "", ""],
            ["B", "8GBDDR3", "2x500GBSATA2", "X", "S$100"],
        ]
        summary = import_catalog(write_csv(rows), memory_store)
        assert summary.as_dict()["created"] == 2
        assert (summary.updated, summary.skipped, summary.errors) == (0, 1, [])

        result = memory_store.query(normalize_query({"ram": ["16GB"]}))
        assert len(result.records) == 1
        record = result.records[0]
        assert record.model == "A"
        assert (record.ram_size_gb, record.storage_total_gb) == (16, 4000)
        assert record.disk_type == DiskType.SATA
        assert record.currency == Currency.EUR

    def test_three_rows_into_empty_store(self, memory_store, write_csv):
        summary = import_catalog(write_csv(SAMPLE_ROWS), memory_store, batch_size=BATCH_SIZE)

        assert (summary.created, summary.updated, summary.skipped) == (3, 0, 0)
        assert summary.errors == []
        assert summary.total_rows == 3
        assert memory_store.count() == 3

        first = memory_store.find_by_id(1)
        assert first.ram_size_gb == 16
        assert first.storage_total_gb == 4000
        assert first.disk_type == DiskType.SATA
        assert first.price_decimal == Decimal("49.99")
        assert first.currency == Currency.EUR
        second = memory_store.find_by_id(2)
        assert second.currency == Currency.USD
        third = memory_store.find_by_id(3)
        assert third.disk_type == DiskType.SSD
        assert third.storage_total_gb == 1920
        assert third.currency == Currency.SGD

    def test_xlsx_source(self, memory_store, write_xlsx):
        summary = import_catalog(write_xlsx(SAMPLE_ROWS), memory_store)
        assert summary.created == 3
        assert memory_store.distinct_locations() == [
            "AmsterdamAMS-01",
            "SingaporeSIN-11",
            "Washington D.C.WDC-01",
        ]

    def test_reimport_is_idempotent(self, memory_store, write_csv):
        path = write_csv(SAMPLE_ROWS)
        import_catalog(path, memory_store)
        before = {r.id: r for r in memory_store.query(normalize_query({})).records}

        summary = import_catalog(path, memory_store)

        assert (summary.created, summary.updated) == (0, 3)
        after = {r.id: r for r in memory_store.query(normalize_query({})).records}
        assert after == before

    def test_changed_price_updates_in_place(self, memory_store, write_csv):
        import_catalog(write_csv(SAMPLE_ROWS), memory_store)
        changed = [list(row) for row in SAMPLE_ROWS]
        changed[0][4] = "€59.99"
        summary = import_catalog(write_csv(changed, name="changed.csv"), memory_store)
        assert summary.updated == 3
        assert memory_store.find_by_id(1).price_amount == "59.99"

    def test_empty_rows_are_skipped_silently(self, memory_store, write_csv):
        rows = [SAMPLE_ROWS[0], ["", "", "", "", ""], ["", "8GBDDR3", "", "Somewhere", ""], SAMPLE_ROWS[1]]
        summary = import_catalog(write_csv(rows), memory_store)
        assert summary.created == 2
        assert summary.skipped == 2
        assert summary.errors == []

    def test_bad_row_is_reported_and_import_continues(self, memory_store, write_csv):
        rows = [SAMPLE_ROWS[0], ["Broken", "8GBDDR3", "2x1TBSATA2", "AMS", "1.2.3"], SAMPLE_ROWS[1]]
        summary = import_catalog(write_csv(rows), memory_store)
        assert summary.created == 2
        assert summary.skipped == 1
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith("Row 3:")
        assert memory_store.count() == 2

    def test_rows_exceeding_column_limits_are_row_errors(self, memory_store, write_csv):
        rows = [
            SAMPLE_ROWS[0],
            ["M" * 300, "8GBDDR3", "2x1TBSATA2", "AMS", "€10"],
            ["Huge", "8GBDDR3", "999x99999TB", "AMS", "€10"],
            ["Pricey", "8GBDDR3", "2x1TBSATA2", "AMS", "€10000000000"],
            SAMPLE_ROWS[1],
        ]
        summary = import_catalog(write_csv(rows), memory_store, batch_size=BATCH_SIZE)
        assert summary.created == 2
        assert summary.skipped == 3
        assert [error.split(":")[0] for error in summary.errors] == ["Row 3", "Row 4", "Row 5"]
        assert memory_store.count() == 2

    def test_duplicate_keys_in_one_file(self, memory_store, write_csv):
        duplicate = list(SAMPLE_ROWS[0])
        duplicate[4] = "€99.00"
        summary = import_catalog(write_csv([SAMPLE_ROWS[0], duplicate]), memory_store, batch_size=10)
        assert (summary.created, summary.updated) == (1, 1)
        assert memory_store.count() == 1
        assert memory_store.find_by_id(1).price_amount == "99.00"

    def test_missing_location_column_reads_empty(self, memory_store, write_csv):
        path = write_csv([["A", "16GB", "1x1TBSATA2", "€1"]], header=["Model", "RAM", "HDD", "Price"])
        summary = import_catalog(path, memory_store)
        assert summary.created == 1
        assert memory_store.find_by_id(1).location == ""


class TestDryRun:
    def test_counts_match_a_real_run_without_writing(self, memory_store, write_csv):
        rows = SAMPLE_ROWS + [SAMPLE_ROWS[0]]
        path = write_csv(rows)

        preview = import_catalog(path, memory_store, batch_size=BATCH_SIZE, dry_run=True)

        assert preview.dry_run
        assert (preview.created, preview.updated, preview.skipped) == (3, 1, 0)
        assert memory_store.count() == 0

        real = import_catalog(path, InMemoryCatalogStore(), batch_size=BATCH_SIZE)
        assert (real.created, real.updated, real.skipped) == (3, 1, 0)

    def test_reports_updates_against_existing_data(self, memory_store, write_csv):
        path = write_csv(SAMPLE_ROWS)
        import_catalog(path, memory_store)
        preview = import_catalog(path, memory_store, dry_run=True)
        assert (preview.created, preview.updated) == (0, 3)


class TestFatalErrors:
    def test_unsupported_extension(self, memory_store, tmp_path):
        path = tmp_path / "servers.pdf"
        path.write_text("nope")
        with pytest.raises(UnsupportedSourceError):
            import_catalog(path, memory_store)

    def test_missing_file(self, memory_store, tmp_path):
        with pytest.raises(SourceNotFoundError):
            import_catalog(tmp_path / "nope.csv", memory_store)

    def test_unrecognized_header_writes_nothing(self, memory_store, write_csv):
        path = write_csv(SAMPLE_ROWS, header=["a", "b", "c", "d", "e"])
        with pytest.raises(HeaderResolutionError):
            import_catalog(path, memory_store)
        assert memory_store.count() == 0

    def test_empty_file(self, memory_store, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(HeaderResolutionError):
            import_catalog(path, memory_store)

    def test_undecodable_csv_writes_nothing(self, memory_store, tmp_path):
        path = tmp_path / "servers.csv"
        path.write_bytes(b"Model,RAM,HDD,Location,Price\nA,16GB,1x1TBSATA2,AMS,\x8049.99\n")
        with pytest.raises(CatalogImportError, match="File could not be read"):
            import_catalog(path, memory_store)
        assert memory_store.count() == 0

    def test_batch_size_must_be_positive(self, memory_store):
        with pytest.raises(ValueError):
            ImportPipeline(memory_store, batch_size=-1)


class TestBatchingAndProgress:
    def test_flushes_every_batch_and_reports_progress(self, memory_store, write_csv):
        flushed: List[int] = []
        original = memory_store.upsert_batch

        def _spy(listings):
            flushed.append(len(listings))
            return original(listings)

        memory_store.upsert_batch = _spy
        progress = RecordingProgress()
        rows = [[f"M{i}", "8GBDDR3", "2x1TBSATA2", "AMS", "€10"] for i in range(5)]

        import_catalog(write_csv(rows), memory_store, batch_size=BATCH_SIZE, progress=progress)

        assert flushed == [2, 2, 1]
        assert progress.calls[0] == (0, 5, "Starting import of 5 rows...")
        assert progress.calls[1] == (2, 5, "Processed 2/5 rows...")
        assert progress.calls[2] == (4, 5, "Processed 4/5 rows...")
        assert progress.calls[-1] == (5, 5, "Import complete!")

    def test_failing_progress_callback_does_not_abort(self, memory_store, write_csv):
        def _broken(current, total, message):
            raise RuntimeError("terminal went away")

        summary = import_catalog(write_csv(SAMPLE_ROWS), memory_store, batch_size=1, progress=_broken)
        assert summary.created == 3

    def test_each_batch_invalidates_cached_queries(self, write_csv):
        cached = CachedCatalogStore(InMemoryCatalogStore(), QueryCache())
        assert cached.query(normalize_query({})).total == 0
        import_catalog(write_csv(SAMPLE_ROWS), cached, batch_size=BATCH_SIZE)
        assert cached.query(normalize_query({})).total == 3
