"""
In-memory catalog store.

Readers work on an immutable snapshot and never take a lock; writers build the
next snapshot under a lock and publish it with a single reference swap. A batch
therefore becomes visible all at once, and a concurrent query sees either the
state before the batch or after it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from server_catalog.domain.models import (
    CatalogFilters,
    CatalogQuery,
    CatalogRecord,
    NaturalKey,
    ServerListing,
    UpsertOutcome,
)
from server_catalog.filters import STORAGE_RANGES
from server_catalog.store.abstract import AbstractCatalogStore
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)

_SORT_KEYS: Dict[str, Callable[[CatalogRecord], object]] = {
    "price": lambda record: record.price_decimal,
    "ram": lambda record: record.ram_size_gb,
    "storage": lambda record: record.storage_total_gb,
    "model": lambda record: record.model,
}


@dataclass(frozen=True)
class _Snapshot:
    # Ordered by id: ids only grow and updates keep their dict position.
    records: Dict[int, CatalogRecord] = field(default_factory=dict)
    by_key: Dict[NaturalKey, int] = field(default_factory=dict)
    next_id: int = 1


def _matches(record: CatalogRecord, filters: CatalogFilters) -> bool:
    if filters.storage and not any(
        STORAGE_RANGES[name].contains(record.storage_total_gb) for name in filters.storage
    ):
        return False
    if filters.ram and record.ram_size_gb not in filters.ram:
        return False
    if filters.disk_type is not None and record.disk_type != filters.disk_type:
        return False
    if filters.location is not None and record.location != filters.location:
        return False
    price: Decimal = record.price_decimal
    if filters.price_min is not None and price < filters.price_min:
        return False
    if filters.price_max is not None and price > filters.price_max:
        return False
    return True


class InMemoryCatalogStore(AbstractCatalogStore):
    """
    Catalog store backed by process memory.
    """

    name: str = "memory"

    def __init__(self) -> None:
        self._snapshot = _Snapshot()
        self._write_lock = threading.Lock()

    def _select(self, query: CatalogQuery) -> Tuple[Sequence[CatalogRecord], int]:
        snapshot = self._snapshot
        matches = [r for r in snapshot.records.values() if _matches(r, query.filters)]
        # Stable sort over id-ordered input: ties stay in ascending id order
        # for both directions.
        matches.sort(key=_SORT_KEYS[query.sort], reverse=query.order == "desc")
        page = matches[query.offset : query.offset + query.limit]
        return page, len(matches)

    def upsert_batch(self, listings: Sequence[ServerListing]) -> List[UpsertOutcome]:
        if not listings:
            return []
        outcomes: List[UpsertOutcome] = []
        with self._write_lock:
            current = self._snapshot
            records = dict(current.records)
            by_key = dict(current.by_key)
            next_id = current.next_id
            for listing in listings:
                key = listing.natural_key
                existing_id = by_key.get(key)
                if existing_id is not None:
                    records[existing_id] = CatalogRecord.from_listing(existing_id, listing)
                    outcomes.append("updated")
                else:
                    records[next_id] = CatalogRecord.from_listing(next_id, listing)
                    by_key[key] = next_id
                    next_id += 1
                    outcomes.append("created")
            self._snapshot = _Snapshot(records=records, by_key=by_key, next_id=next_id)
        log.debug(
            "Batch applied",
            extra={"store": self.name, "batch": len(listings), "records": len(records)},
        )
        return outcomes

    def find_by_id(self, record_id: int) -> Optional[CatalogRecord]:
        return self._snapshot.records.get(record_id)

    def find_by_natural_key(
        self, model: str, location: str, storage_raw: str
    ) -> Optional[CatalogRecord]:
        snapshot = self._snapshot
        record_id = snapshot.by_key.get((model, location, storage_raw))
        return snapshot.records.get(record_id) if record_id is not None else None

    def distinct_locations(self) -> List[str]:
        return sorted({record.location for record in self._snapshot.records.values()})

    def count(self) -> int:
        return len(self._snapshot.records)


__all__ = ["InMemoryCatalogStore"]
