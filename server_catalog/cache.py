"""
Read-through TTL cache for catalog queries.

Keys are derived from the normalized query, so two requests that differ only
in parameter order share one entry. Invalidation is deliberately coarse: every
write batch clears the whole cache.

Clearing swaps the entry table in one assignment under the lock, and bumps a
generation counter. A value computed from pre-clear data is dropped instead of
being stored into the post-clear table, so readers never get stale and fresh
entries mixed for the same snapshot.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from server_catalog.domain.models import (
    CatalogQuery,
    CatalogRecord,
    QueryResult,
    ServerListing,
    UpsertOutcome,
)
from server_catalog.store.abstract import CatalogStore
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

CACHE_PREFIX = "servers_"
LOCATIONS_KEY = f"{CACHE_PREFIX}locations"
DEFAULT_TTL_SECONDS = 3600

_MISSING = object()


def query_cache_key(query: CatalogQuery) -> str:
    """Deterministic key for a normalized query."""
    encoded = json.dumps(query.signature(), sort_keys=True, separators=(",", ":"))
    return CACHE_PREFIX + hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class QueryCache:
    """
    Thread-safe in-process cache with a fixed time-to-live per entry.

    Parameters
    ----------
    ttl_seconds : int
        Lifetime of an entry.
    clock : callable
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._generation = 0
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: str) -> Any:
        entries = self._entries
        item = entries.get(key)
        if item is None:
            return _MISSING
        expires_at, value = item
        if self._clock() >= expires_at:
            with self._lock:
                if entries.get(key) is item:
                    del entries[key]
            return _MISSING
        return value

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any, generation: Optional[int] = None) -> bool:
        """
        Store a value. When `generation` is given and a clear happened since it
        was read, the value is discarded and False is returned.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            return True

    def get_or_compute(self, key: str, compute: Callable[[], T]) -> T:
        value = self._lookup(key)
        if value is not _MISSING:
            self.hits += 1
            log.debug("Cache hit", extra={"cache_key": key})
            return value
        self.misses += 1
        generation = self._generation
        value = compute()
        if not self.set(key, value, generation=generation):
            log.debug("Discarded value computed before invalidation", extra={"cache_key": key})
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self._generation += 1
        log.debug("Cache cleared", extra={"generation": self._generation})


class CachedCatalogStore:
    """
    CatalogStore wrapper: cached reads, cache-wide invalidation on writes.

    `query` and `distinct_locations` are read-through; point lookups go
    straight to the wrapped store.
    """

    def __init__(self, store: CatalogStore, cache: Optional[QueryCache] = None) -> None:
        self.store = store
        self.cache = cache or QueryCache()
        self.name = store.name

    def query(self, query: CatalogQuery) -> QueryResult:
        return self.cache.get_or_compute(query_cache_key(query), lambda: self.store.query(query))

    def distinct_locations(self) -> List[str]:
        return list(self.cache.get_or_compute(LOCATIONS_KEY, self.store.distinct_locations))

    def upsert(self, listing: ServerListing) -> UpsertOutcome:
        try:
            return self.store.upsert(listing)
        finally:
            self.cache.clear()

    def upsert_batch(self, listings: Sequence[ServerListing]) -> List[UpsertOutcome]:
        try:
            return self.store.upsert_batch(listings)
        finally:
            self.cache.clear()

    def find_by_id(self, record_id: int) -> Optional[CatalogRecord]:
        return self.store.find_by_id(record_id)

    def find_by_natural_key(
        self, model: str, location: str, storage_raw: str
    ) -> Optional[CatalogRecord]:
        return self.store.find_by_natural_key(model, location, storage_raw)

    def count(self) -> int:
        return self.store.count()

    def invalidate(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()


__all__ = [
    "CACHE_PREFIX",
    "CachedCatalogStore",
    "DEFAULT_TTL_SECONDS",
    "LOCATIONS_KEY",
    "QueryCache",
    "query_cache_key",
]
