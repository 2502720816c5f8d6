"""
Abstract store interfaces for the server catalog.

Concrete stores (in-memory, PostgreSQL) implement the CatalogStore protocol.
`AbstractCatalogStore` adds the behaviour every store shares: single upserts
are expressed as a one-element batch, and query results are assembled the same
way regardless of backend.
"""

from __future__ import annotations

import abc
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from server_catalog.domain.models import (
    CatalogQuery,
    CatalogRecord,
    QueryResult,
    ServerListing,
    UpsertOutcome,
)


@runtime_checkable
class CatalogStore(Protocol):
    """
    Ordered collection of catalog records.

    `query`, `find_by_id`, `find_by_natural_key` and `distinct_locations` are
    read-only and safe to call concurrently. Writes go through `upsert` /
    `upsert_batch` and are serialized by the store.
    """

    name: str

    def query(self, query: CatalogQuery) -> QueryResult:
        """
        Return one page of records matching the query's filters.

        Filters combine with AND; selected storage buckets combine with OR.
        Sorting is stable with ties broken by ascending id, so pages of an
        unchanged query never overlap or leave gaps.
        """
        ...

    def upsert(self, listing: ServerListing) -> UpsertOutcome:
        """Insert the listing, or overwrite the record with the same natural key."""
        ...

    def upsert_batch(self, listings: Sequence[ServerListing]) -> List[UpsertOutcome]:
        """
        Apply a batch of upserts as one serialized write.

        Returns one outcome per listing, in order. A key repeated inside the
        batch is created once and updated afterwards.
        """
        ...

    def find_by_id(self, record_id: int) -> Optional[CatalogRecord]:
        ...

    def find_by_natural_key(
        self, model: str, location: str, storage_raw: str
    ) -> Optional[CatalogRecord]:
        ...

    def distinct_locations(self) -> List[str]:
        """Alphabetically sorted set of locations present in the store."""
        ...

    def count(self) -> int:
        ...


class AbstractCatalogStore(abc.ABC):
    """
    ABC helper for class-based store implementations.

    Subclasses set `name` and implement the abstract methods.
    """

    name: str

    @abc.abstractmethod
    def _select(self, query: CatalogQuery) -> tuple[Sequence[CatalogRecord], int]:
        """Return (page records, total matches) for the query."""
        raise NotImplementedError

    @abc.abstractmethod
    def upsert_batch(self, listings: Sequence[ServerListing]) -> List[UpsertOutcome]:
        raise NotImplementedError

    @abc.abstractmethod
    def find_by_id(self, record_id: int) -> Optional[CatalogRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    def find_by_natural_key(
        self, model: str, location: str, storage_raw: str
    ) -> Optional[CatalogRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    def distinct_locations(self) -> List[str]:
        raise NotImplementedError

    @abc.abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    def query(self, query: CatalogQuery) -> QueryResult:
        records, total = self._select(query)
        return QueryResult(records=tuple(records), total=total, page=query.page, limit=query.limit)

    def upsert(self, listing: ServerListing) -> UpsertOutcome:
        return self.upsert_batch([listing])[0]

    def close(self) -> None:
        """Release backend resources. No-op unless the store holds any."""


__all__ = [
    "AbstractCatalogStore",
    "CatalogStore",
]
