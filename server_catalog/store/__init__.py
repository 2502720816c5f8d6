"""
Store package for the server catalog.

Re-exports the store interfaces and the concrete backends so downstream code
can import from `server_catalog.store` directly.
"""

from server_catalog.store.abstract import AbstractCatalogStore, CatalogStore
from server_catalog.store.memory import InMemoryCatalogStore
from server_catalog.store.postgres import PostgresCatalogStore

__all__ = [
    # Abstracts
    "AbstractCatalogStore",
    "CatalogStore",
    # Backends
    "InMemoryCatalogStore",
    "PostgresCatalogStore",
]
