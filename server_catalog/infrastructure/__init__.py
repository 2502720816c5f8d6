"""
Infrastructure package for the server catalog.

Centralizes database connectivity (connection factory, pooling). Keep this
layer focused on I/O and resource management, decoupled from catalog logic.
"""

from server_catalog.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_pool,
)

__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_pool",
]
