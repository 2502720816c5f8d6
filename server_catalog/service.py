"""
Library entry points of the server catalog.

`CatalogService` is what an HTTP layer or the CLI talks to: it validates raw
request parameters, answers queries through the read-through cache, exposes
filter options, and runs imports and seed loads against the same cached store
so writes invalidate cached reads.

Usage:
    from server_catalog.service import build_service

    service = build_service()
    page = service.search({"ram": ["16GB"], "sort": "price", "limit": "10"})
    options = service.filter_options()
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from server_catalog.cache import CachedCatalogStore, QueryCache
from server_catalog.config import Settings, get_settings
from server_catalog.domain.models import (
    CatalogQuery,
    CatalogRecord,
    FilterOptions,
    ImportSummary,
    QueryResult,
)
from server_catalog.filters import filter_options, normalize_query
from server_catalog.importer import ProgressCallback, estimate_row_count, import_catalog
from server_catalog.infrastructure.db_factory import build_dsn
from server_catalog.seed import load_seed
from server_catalog.store import CatalogStore, InMemoryCatalogStore, PostgresCatalogStore
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)


def _store_factories() -> Dict[str, Callable[[Settings], CatalogStore]]:
    """Registry of available storage backends."""
    return {
        "memory": lambda settings: InMemoryCatalogStore(),
        "postgres": lambda settings: PostgresCatalogStore(
            dsn_override=build_dsn(settings),
            statement_timeout_ms=settings.db_statement_timeout_ms,
        ),
    }


def available_backends() -> List[str]:
    """List available backend names."""
    return sorted(_store_factories().keys())


def _resolve_store(name: str, settings: Settings) -> CatalogStore:
    factories = _store_factories()
    if name not in factories:
        raise ValueError(f"Unknown backend '{name}'. Available: {', '.join(factories)}")
    return factories[name](settings)


class CatalogService:
    def __init__(
        self,
        store: CatalogStore,
        settings: Optional[Settings] = None,
        cache: Optional[QueryCache] = None,
    ) -> None:
        self.settings = settings or get_settings()
        if isinstance(store, CachedCatalogStore):
            self.store = store
        else:
            cache = cache or QueryCache(ttl_seconds=self.settings.cache_ttl_seconds)
            self.store = CachedCatalogStore(store, cache)

    def normalize(self, params: Mapping[str, Any]) -> CatalogQuery:
        return normalize_query(
            params,
            default_limit=self.settings.page_default_limit,
            max_limit=self.settings.page_max_limit,
        )

    def query(self, query: CatalogQuery) -> QueryResult:
        return self.store.query(query)

    def search(self, params: Mapping[str, Any]) -> QueryResult:
        """Validate raw request parameters, then query. Never raises for bad input."""
        return self.query(self.normalize(params))

    def get(self, record_id: int) -> Optional[CatalogRecord]:
        return self.store.find_by_id(record_id)

    def filter_options(self) -> FilterOptions:
        return filter_options(self.store.distinct_locations())

    def import_file(
        self,
        path: str | os.PathLike[str],
        batch_size: Optional[int] = None,
        dry_run: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportSummary:
        return import_catalog(
            path,
            self.store,
            batch_size=batch_size or self.settings.import_batch_size,
            dry_run=dry_run,
            progress=progress,
        )

    def estimate_rows(self, path: str | os.PathLike[str]) -> int:
        return estimate_row_count(path)

    def load_seed(self, path: Optional[str | os.PathLike[str]] = None) -> int:
        return load_seed(path or self.settings.catalog_seed_path, self.store)

    def close(self) -> None:
        self.store.close()


def build_service(settings: Optional[Settings] = None, backend: Optional[str] = None) -> CatalogService:
    """
    Build a service for the configured backend.

    The memory backend starts empty, so it is filled from the seed file when
    one exists at settings.catalog_seed_path.
    """
    settings = settings or get_settings()
    name = backend or settings.catalog_backend
    service = CatalogService(_resolve_store(name, settings), settings)
    if name == "memory":
        seed_path = Path(settings.catalog_seed_path)
        if seed_path.is_file():
            service.load_seed(seed_path)
        else:
            log.info("No seed file; starting with an empty catalog", extra={"path": str(seed_path)})
    return service


__all__ = [
    "CatalogService",
    "available_backends",
    "build_service",
]
