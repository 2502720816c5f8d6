"""
PostgreSQL connection factory for the server catalog.

Owns the process-wide connection pool used by the PostgreSQL catalog store.
The PoolManager singleton closes the pool on interpreter exit.
TRANSIENT_ERRORS lists the failures the store retries with tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

import psycopg
from psycopg import sql
from psycopg_pool import ConnectionPool

from server_catalog.config import Settings, get_settings
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)

TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(cursor: psycopg.Cursor, timeout_ms: int) -> None:
    """
    Bound every statement of the current transaction; 0 disables the limit.

    Pooled connections are not in autocommit mode, so `SET LOCAL` expires with
    the transaction instead of leaking into the next borrower of the connection.
    """
    if timeout_ms <= 0:
        return
    cursor.execute(
        sql.SQL("SET LOCAL statement_timeout = {}").format(sql.Literal(int(timeout_ms)))
    )


class PoolManager:
    """
    Thread-safe singleton for the shared connection pool.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(
        self, min_size: int = 1, max_size: int = 10, dsn: Optional[str] = None
    ) -> ConnectionPool:
        """
        Get or create the connection pool.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.
        dsn : str, optional
            Connection string; defaults to the one built from settings.
        """
        with self._lock:
            if self._pool is None:
                self._pool = ConnectionPool(
                    conninfo=dsn or build_dsn(),
                    min_size=min_size,
                    max_size=max_size,
                    open=True,
                )
                log.info("Connection pool opened", extra={"min_size": min_size, "max_size": max_size})
            return self._pool

    def close_all(self) -> None:
        """
        Close the managed pool. Registered with atexit.
        """
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                finally:
                    self._pool = None


def get_sync_pool(min_size: int = 1, max_size: int = 10, dsn: Optional[str] = None) -> ConnectionPool:
    """
    Get or create the shared pool via PoolManager.
    """
    return PoolManager().get_pool(min_size=min_size, max_size=max_size, dsn=dsn)


__all__ = [
    "PoolManager",
    "TRANSIENT_ERRORS",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_pool",
]
