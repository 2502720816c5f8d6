"""
Domain package for the server catalog.

Exports the listing, record, query and import-summary models used by the
parsers, stores, cache and importer. Keep this package focused on data
definitions and validation concerns.
"""

from server_catalog.domain.models import (
    CatalogFilters,
    CatalogQuery,
    CatalogRecord,
    Currency,
    DiskType,
    FilterOptions,
    ImportSummary,
    QueryResult,
    ServerListing,
    StorageRange,
)

__all__ = [
    "CatalogFilters",
    "CatalogQuery",
    "CatalogRecord",
    "Currency",
    "DiskType",
    "FilterOptions",
    "ImportSummary",
    "QueryResult",
    "ServerListing",
    "StorageRange",
]
