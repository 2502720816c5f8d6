"""
Server Catalog - spreadsheet ingestion and filtered search for server listings.

This package imports hosting-provider server listings from XLSX/CSV sheets,
derives normalized attributes (RAM size, total storage, disk type, price and
currency), persists them with natural-key upserts, and answers filtered,
sorted, paginated queries through a read-through cache.

Backends:

- In-memory store (default, seeded from a JSON file)
- PostgreSQL store (psycopg connection pool)
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from server_catalog.config import Settings, get_settings
from server_catalog.domain.models import (
    CatalogFilters,
    CatalogQuery,
    CatalogRecord,
    ImportSummary,
    QueryResult,
    ServerListing,
)
from server_catalog.service import CatalogService, available_backends, build_service
from server_catalog.store.abstract import AbstractCatalogStore, CatalogStore
from server_catalog.utils.logging import configure_logging, get_logger
from server_catalog.utils.profiler import ProfileStats, profile_block

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Service
    "CatalogService",
    "available_backends",
    "build_service",
    # Domain
    "CatalogFilters",
    "CatalogQuery",
    "CatalogRecord",
    "ImportSummary",
    "QueryResult",
    "ServerListing",
    # Store abstractions
    "CatalogStore",
    "AbstractCatalogStore",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
