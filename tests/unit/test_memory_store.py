from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from server_catalog.domain.models import CatalogQuery, DiskType
from server_catalog.filters import normalize_query
from server_catalog.parsing import parse_listing
from server_catalog.store import AbstractCatalogStore, CatalogStore, InMemoryCatalogStore

PAGE_LIMIT = 3
LISTING_COUNT = 10


def _listing(model="Dell R210", ram="16GBDDR3", hdd="2x2TBSATA2", location="AmsterdamAMS-01", price="€49.99"):
    return parse_listing(model=model, ram=ram, storage=hdd, location=location, price=price)


@pytest.fixture()
def catalog(memory_store: InMemoryCatalogStore) -> InMemoryCatalogStore:
    memory_store.upsert_batch(
        [
            _listing("A", "16GBDDR3", "2x2TBSATA2", "AmsterdamAMS-01", "€49.99"),  # 4000 GB
            _listing("B", "32GBDDR4", "4x480GBSSD", "AmsterdamAMS-01", "€161.99"),  # 1920 GB
            _listing("C", "4GBDDR3", "4x300GBSAS", "DallasDAL-10", "$39.99"),  # 1200 GB
            _listing("D", "16GBDDR3", "2x120GBSSD", "SingaporeSIN-11", "S$565.99"),  # 240 GB
            _listing("E", "64GBDDR4", "24x4TBSATA2", "FrankfurtFRA-10", "€49.99"),  # 96000 GB
        ]
    )
    return memory_store


def _query(**params) -> CatalogQuery:
    return normalize_query(params)


class TestProtocol:
    def test_memory_store_satisfies_protocol(self, memory_store):
        assert isinstance(memory_store, CatalogStore)
        assert isinstance(memory_store, AbstractCatalogStore)
        assert memory_store.name == "memory"


class TestUpsert:
    def test_ids_start_at_one_and_increase(self, memory_store):
        assert memory_store.upsert(_listing("A")) == "created"
        assert memory_store.upsert(_listing("B")) == "created"
        assert memory_store.find_by_natural_key("A", "AmsterdamAMS-01", "2x2TBSATA2").id == 1
        assert memory_store.find_by_natural_key("B", "AmsterdamAMS-01", "2x2TBSATA2").id == 2

    def test_update_keeps_id_and_replaces_attributes(self, memory_store):
        memory_store.upsert(_listing(price="€49.99"))
        assert memory_store.upsert(_listing(price="€59.99", ram="32GBDDR3")) == "updated"
        record = memory_store.find_by_id(1)
        assert record.price_decimal == Decimal("59.99")
        assert record.ram_size_gb == 32
        assert memory_store.count() == 1

    def test_natural_key_distinguishes_location_and_storage(self, memory_store):
        memory_store.upsert(_listing())
        memory_store.upsert(_listing(location="DallasDAL-10"))
        memory_store.upsert(_listing(hdd="2x1TBSATA2"))
        assert memory_store.count() == 3

    def test_batch_outcomes_in_order_with_repeated_key(self, memory_store):
        outcomes = memory_store.upsert_batch([_listing("A"), _listing("B"), _listing("A", price="€1")])
        assert outcomes == ["created", "created", "updated"]
        assert memory_store.count() == 2
        assert memory_store.find_by_id(1).price_amount == "1"

    def test_empty_batch(self, memory_store):
        assert memory_store.upsert_batch([]) == []

    def test_lookup_misses(self, memory_store):
        assert memory_store.find_by_id(42) is None
        assert memory_store.find_by_natural_key("x", "y", "z") is None


class TestQuery:
    def test_default_sort_is_price_ascending_with_id_tiebreak(self, catalog):
        result = catalog.query(_query())
        assert [r.model for r in result.records] == ["C", "A", "E", "B", "D"]
        assert result.total == 5

    def test_descending_keeps_id_tiebreak(self, catalog):
        result = catalog.query(_query(order="desc"))
        assert [r.model for r in result.records] == ["D", "B", "A", "E", "C"]

    @pytest.mark.parametrize(
        "sort, expected",
        [
            ("ram", ["C", "A", "D", "B", "E"]),
            ("storage", ["D", "C", "B", "A", "E"]),
            ("model", ["A", "B", "C", "D", "E"]),
        ],
    )
    def test_sort_fields(self, catalog, sort, expected):
        assert [r.model for r in catalog.query(_query(sort=sort)).records] == expected

    def test_storage_buckets_are_ored(self, catalog):
        result = catalog.query(_query(storage=["0-250GB", "1TB-2TB"]))
        assert sorted(r.model for r in result.records) == ["B", "C", "D"]

    def test_storage_bucket_upper_bound_exclusive(self, catalog):
        result = catalog.query(_query(storage=["2TB-3TB"]))
        assert result.total == 0
        result = catalog.query(_query(storage=["4TB-8TB"]))
        assert [r.model for r in result.records] == ["A"]

    def test_open_ended_bucket(self, catalog):
        assert [r.model for r in catalog.query(_query(storage=["72TB+"])).records] == ["E"]

    def test_filters_are_anded(self, catalog):
        result = catalog.query(_query(ram=["16GB"], diskType="SSD"))
        assert [r.model for r in result.records] == ["D"]

    def test_location_exact_match(self, catalog):
        assert catalog.query(_query(location="AmsterdamAMS-01")).total == 2
        assert catalog.query(_query(location="Amsterdam")).total == 0

    def test_price_bounds_inclusive(self, catalog):
        result = catalog.query(_query(priceMin="49.99", priceMax="161.99"))
        assert sorted(r.model for r in result.records) == ["A", "B", "E"]
        assert catalog.query(_query(diskType="SAS")).records[0].disk_type == DiskType.SAS

    def test_empty_store(self, memory_store):
        result = memory_store.query(_query())
        assert result.records == ()
        assert result.total == 0
        assert result.total_pages == 0
        assert not result.has_next_page


class TestPagination:
    @pytest.fixture()
    def many(self, memory_store):
        memory_store.upsert_batch(
            [_listing(f"M{i:02d}", price="€10") for i in range(LISTING_COUNT)]
        )
        return memory_store

    def test_pages_cover_everything_once(self, many):
        seen = []
        page = 1
        while True:
            result = many.query(_query(page=page, limit=PAGE_LIMIT))
            seen.extend(r.id for r in result.records)
            if not result.has_next_page:
                break
            page += 1
        assert seen == list(range(1, LISTING_COUNT + 1))

    def test_meta(self, many):
        result = many.query(_query(page=2, limit=PAGE_LIMIT))
        assert result.meta() == {
            "total": LISTING_COUNT,
            "page": 2,
            "limit": PAGE_LIMIT,
            "totalPages": 4,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    def test_page_past_end_is_empty(self, many):
        result = many.query(_query(page=99, limit=PAGE_LIMIT))
        assert result.records == ()
        assert result.total == LISTING_COUNT
        assert not result.has_next_page


class TestLocations:
    def test_distinct_sorted(self, catalog):
        catalog.upsert(_listing("Z", location="AmsterdamAMS-01"))
        assert catalog.distinct_locations() == [
            "AmsterdamAMS-01",
            "DallasDAL-10",
            "FrankfurtFRA-10",
            "SingaporeSIN-11",
        ]


class TestConcurrency:
    def test_parallel_batches_do_not_lose_records(self, memory_store):
        def _writer(prefix: str) -> None:
            for i in range(20):
                memory_store.upsert_batch([_listing(f"{prefix}-{i}")])

        threads = [threading.Thread(target=_writer, args=(f"T{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert memory_store.count() == 80
        ids = sorted(r.id for r in memory_store.query(_query(limit=100)).records)
        assert ids == list(range(1, 81))
