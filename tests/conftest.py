"""
Pytest configuration for the server catalog.

Provides fixtures for:
- Settings with test-specific overrides
- In-memory stores and services
- Writing small CSV/XLSX listing sheets
- Database connection management for the PostgreSQL integration tests
"""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Callable, Generator, List, Optional, Sequence

import psycopg
import pytest
from openpyxl import Workbook

from server_catalog.config import Settings
from server_catalog.service import CatalogService
from server_catalog.store import InMemoryCatalogStore, PostgresCatalogStore

REPO_ROOT = Path(__file__).resolve().parent.parent
SEED_PATH = REPO_ROOT / "data" / "servers.json"
SHEET_HEADER = ["Model", "RAM", "HDD", "Location", "Price"]

SheetWriter = Callable[..., Path]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "server_catalog"),
        log_level="DEBUG",
        catalog_backend="memory",
        catalog_seed_path=str(SEED_PATH),
        import_batch_size=100,
    )


@pytest.fixture(scope="session")
def seed_path() -> Path:
    return SEED_PATH


@pytest.fixture()
def memory_store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture()
def service(test_settings: Settings, memory_store: InMemoryCatalogStore) -> CatalogService:
    """Service over an empty in-memory store."""
    return CatalogService(memory_store, test_settings)


@pytest.fixture()
def seeded_service(service: CatalogService, seed_path: Path) -> CatalogService:
    """Service over an in-memory store filled from data/servers.json."""
    service.load_seed(seed_path)
    return service


@pytest.fixture()
def write_csv(tmp_path: Path) -> SheetWriter:
    """
    Factory writing a CSV sheet: write_csv(rows, header=..., name=...).
    """

    def _write(
        rows: Sequence[Sequence[str]],
        header: Optional[List[str]] = None,
        name: str = "servers.csv",
    ) -> Path:
        path = tmp_path / name
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(SHEET_HEADER if header is None else header)
            writer.writerows(rows)
        return path

    return _write


@pytest.fixture()
def write_xlsx(tmp_path: Path) -> SheetWriter:
    """
    Factory writing an XLSX sheet: write_xlsx(rows, header=..., name=...).
    """

    def _write(
        rows: Sequence[Sequence[object]],
        header: Optional[List[str]] = None,
        name: str = "servers.xlsx",
    ) -> Path:
        path = tmp_path / name
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(SHEET_HEADER if header is None else header)
        for row in rows:
            sheet.append(list(row))
        workbook.save(path)
        return path

    return _write


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection, test_dsn: str) -> bool:
    """
    Ensure the servers table and its indexes exist.
    """
    store = PostgresCatalogStore(dsn_override=test_dsn)
    try:
        store.create_schema()
    finally:
        store.close()
    return True


@pytest.fixture(scope="function")
def clean_servers_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Clean the servers table before and after each test function.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.servers RESTART IDENTITY;")
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.servers RESTART IDENTITY;")
    db_connection.commit()


@pytest.fixture(scope="function")
def pg_store(clean_servers_table, test_dsn: str) -> Generator[PostgresCatalogStore, None, None]:
    """PostgreSQL store over an empty servers table."""
    store = PostgresCatalogStore(dsn_override=test_dsn, pool_min_size=1, pool_max_size=4)
    try:
        yield store
    finally:
        store.close()
