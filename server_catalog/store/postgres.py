"""
PostgreSQL catalog store.

Records live in `public.servers`, with a unique index on the natural key so
upserts are a single `INSERT ... ON CONFLICT DO UPDATE`. The exact price text
is kept in `price_amount`; the `price` NUMERIC column mirrors it for filtering
and sorting.

Filter and ordering clauses are built by pure functions (`build_where`,
`build_order_by`) so they can be tested without a database.
"""

from __future__ import annotations

import threading
from typing import Any, List, Optional, Sequence, Tuple

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from server_catalog.config import get_settings
from server_catalog.domain.models import (
    CatalogFilters,
    CatalogQuery,
    CatalogRecord,
    ServerListing,
    UpsertOutcome,
)
from server_catalog.filters import STORAGE_RANGES
from server_catalog.infrastructure.db_factory import (
    TRANSIENT_ERRORS,
    apply_statement_timeout,
    get_sync_pool,
)
from server_catalog.store.abstract import AbstractCatalogStore
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS public.servers (
    id BIGSERIAL PRIMARY KEY,
    model VARCHAR(255) NOT NULL,
    ram_raw VARCHAR(100) NOT NULL,
    ram_size_gb INTEGER NOT NULL CHECK (ram_size_gb >= 0),
    storage_raw VARCHAR(255) NOT NULL,
    storage_total_gb INTEGER NOT NULL CHECK (storage_total_gb >= 0),
    disk_type VARCHAR(20) NOT NULL,
    location VARCHAR(100) NOT NULL,
    price_amount VARCHAR(32) NOT NULL,
    price NUMERIC(12, 2) NOT NULL CHECK (price >= 0),
    currency VARCHAR(10) NOT NULL DEFAULT 'EUR'
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_servers_natural_key
    ON public.servers (model, location, storage_raw);
CREATE INDEX IF NOT EXISTS idx_servers_ram_size ON public.servers (ram_size_gb);
CREATE INDEX IF NOT EXISTS idx_servers_storage ON public.servers (storage_total_gb);
CREATE INDEX IF NOT EXISTS idx_servers_disk_type ON public.servers (disk_type);
CREATE INDEX IF NOT EXISTS idx_servers_location ON public.servers (location);
"""

RECORD_COLUMNS = (
    "id, model, ram_raw, ram_size_gb, storage_raw, storage_total_gb, "
    "disk_type, location, price_amount, currency"
)

UPSERT_SQL = """
INSERT INTO public.servers (
    model, ram_raw, ram_size_gb, storage_raw, storage_total_gb,
    disk_type, location, price_amount, price, currency
) VALUES (
    %(model)s, %(ram_raw)s, %(ram_size_gb)s, %(storage_raw)s, %(storage_total_gb)s,
    %(disk_type)s, %(location)s, %(price_amount)s, %(price)s, %(currency)s
)
ON CONFLICT (model, location, storage_raw) DO UPDATE SET
    ram_raw = EXCLUDED.ram_raw,
    ram_size_gb = EXCLUDED.ram_size_gb,
    storage_total_gb = EXCLUDED.storage_total_gb,
    disk_type = EXCLUDED.disk_type,
    price_amount = EXCLUDED.price_amount,
    price = EXCLUDED.price,
    currency = EXCLUDED.currency
RETURNING (xmax = 0) AS inserted;
"""

# COLLATE "C" keeps model ordering byte-wise, independent of the database locale.
_SORT_COLUMNS = {
    "price": "price",
    "ram": "ram_size_gb",
    "storage": "storage_total_gb",
    "model": 'model COLLATE "C"',
}

_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)


def build_where(filters: CatalogFilters) -> Tuple[str, List[Any]]:
    """
    Translate normalized filters into a WHERE clause and its parameters.

    Returns an empty clause when no filter is active.
    """
    conditions: List[str] = []
    params: List[Any] = []

    if filters.storage:
        ranges: List[str] = []
        for name in filters.storage:
            bucket = STORAGE_RANGES[name]
            if bucket.max_gb is None:
                ranges.append("storage_total_gb >= %s")
                params.append(bucket.min_gb)
            else:
                ranges.append("(storage_total_gb >= %s AND storage_total_gb < %s)")
                params.extend([bucket.min_gb, bucket.max_gb])
        conditions.append("(" + " OR ".join(ranges) + ")")

    if filters.ram:
        conditions.append("ram_size_gb = ANY(%s)")
        params.append(list(filters.ram))

    if filters.disk_type is not None:
        conditions.append("disk_type = %s")
        params.append(filters.disk_type.value)

    if filters.location is not None:
        conditions.append("location = %s")
        params.append(filters.location)

    if filters.price_min is not None:
        conditions.append("price >= %s")
        params.append(filters.price_min)

    if filters.price_max is not None:
        conditions.append("price <= %s")
        params.append(filters.price_max)

    if not conditions:
        return "", params
    return "WHERE " + " AND ".join(conditions), params


def build_order_by(sort: str, order: str) -> str:
    column = _SORT_COLUMNS.get(sort, _SORT_COLUMNS["price"])
    direction = "DESC" if order == "desc" else "ASC"
    return f"ORDER BY {column} {direction}, id ASC"


def _listing_params(listing: ServerListing) -> dict:
    params = listing.model_dump(mode="json")
    params["price"] = listing.price_decimal
    return params


class PostgresCatalogStore(AbstractCatalogStore):
    """
    Catalog store backed by a psycopg connection pool.
    """

    name: str = "postgres"

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        pool_min_size: int = 1,
        pool_max_size: int = 10,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.statement_timeout_ms = (
            settings.db_statement_timeout_ms if statement_timeout_ms is None else statement_timeout_ms
        )
        self.pool_min_size = pool_min_size
        self.pool_max_size = pool_max_size
        self._dsn_override = dsn_override
        self._pool_instance: Optional[ConnectionPool] = None
        self._owns_pool = False
        self._write_lock = threading.Lock()

    def _get_pool(self) -> ConnectionPool:
        if self._pool_instance is not None:
            return self._pool_instance
        if self._dsn_override:
            self._pool_instance = ConnectionPool(
                conninfo=self._dsn_override,
                min_size=self.pool_min_size,
                max_size=self.pool_max_size,
                open=True,
            )
            self._owns_pool = True
        else:
            self._pool_instance = get_sync_pool(
                min_size=self.pool_min_size, max_size=self.pool_max_size
            )
        return self._pool_instance

    def close(self) -> None:
        if self._pool_instance is not None and self._owns_pool:
            self._pool_instance.close()
        self._pool_instance = None

    @_retry_transient
    def create_schema(self) -> None:
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        log.info("Schema ensured", extra={"store": self.name, "table": "public.servers"})

    @_retry_transient
    def _select(self, query: CatalogQuery) -> Tuple[Sequence[CatalogRecord], int]:
        where, params = build_where(query.filters)
        order_by = build_order_by(query.sort, query.order)
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                # Count and page must come from the same snapshot.
                cur.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ READ ONLY")
                apply_statement_timeout(cur, self.statement_timeout_ms)
                cur.execute(f"SELECT COUNT(*) AS total FROM public.servers {where}", params)
                total = cur.fetchone()["total"]
                cur.execute(
                    f"SELECT {RECORD_COLUMNS} FROM public.servers {where} {order_by} "
                    "LIMIT %s OFFSET %s",
                    [*params, query.limit, query.offset],
                )
                rows = cur.fetchall()
        return [CatalogRecord(**row) for row in rows], int(total)

    @_retry_transient
    def upsert_batch(self, listings: Sequence[ServerListing]) -> List[UpsertOutcome]:
        if not listings:
            return []
        outcomes: List[UpsertOutcome] = []
        with self._write_lock:
            with self._get_pool().connection() as conn:
                with conn.cursor() as cur:
                    apply_statement_timeout(cur, self.statement_timeout_ms)
                    for listing in listings:
                        cur.execute(UPSERT_SQL, _listing_params(listing))
                        inserted = cur.fetchone()[0]
                        outcomes.append("created" if inserted else "updated")
        log.debug("Batch applied", extra={"store": self.name, "batch": len(listings)})
        return outcomes

    def _fetch_one(self, condition: str, params: Sequence[Any]) -> Optional[CatalogRecord]:
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                apply_statement_timeout(cur, self.statement_timeout_ms)
                cur.execute(
                    f"SELECT {RECORD_COLUMNS} FROM public.servers WHERE {condition}", params
                )
                row = cur.fetchone()
        return CatalogRecord(**row) if row else None

    @_retry_transient
    def find_by_id(self, record_id: int) -> Optional[CatalogRecord]:
        return self._fetch_one("id = %s", [record_id])

    @_retry_transient
    def find_by_natural_key(
        self, model: str, location: str, storage_raw: str
    ) -> Optional[CatalogRecord]:
        return self._fetch_one(
            "model = %s AND location = %s AND storage_raw = %s", [model, location, storage_raw]
        )

    @_retry_transient
    def distinct_locations(self) -> List[str]:
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    'SELECT DISTINCT location COLLATE "C" AS location FROM public.servers ORDER BY 1'
                )
                return [row[0] for row in cur.fetchall()]

    @_retry_transient
    def count(self) -> int:
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM public.servers")
                return int(cur.fetchone()[0])


__all__ = [
    "PostgresCatalogStore",
    "SCHEMA_SQL",
    "build_order_by",
    "build_where",
]
