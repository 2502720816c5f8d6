"""
Domain models for the server catalog.

Defines the listing/record schema shared by the parsers, the stores, the cache
and the importer. Raw spreadsheet text is kept next to the values derived from
it; the derived values are authoritative for filtering and sorting.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, TypedDict

from pydantic import BaseModel, Field, field_validator

SortField = Literal["price", "ram", "storage", "model"]
SortOrder = Literal["asc", "desc"]
UpsertOutcome = Literal["created", "updated"]
NaturalKey = Tuple[str, str, str]

# Column limits of the servers table.
MAX_SIZE_GB = 2**31 - 1
MAX_PRICE = Decimal("9999999999.99")


class DiskType(str, Enum):
    SAS = "SAS"
    SATA = "SATA"
    SSD = "SSD"
    UNKNOWN = "UNKNOWN"


class Currency(str, Enum):
    EUR = "EUR"
    USD = "USD"
    SGD = "SGD"


CURRENCY_SYMBOLS: Dict[Currency, str] = {
    Currency.EUR: "€",
    Currency.USD: "$",
    Currency.SGD: "S$",
}


class ServerListing(BaseModel):
    """
    A parsed server listing that has not been persisted yet.
    """

    model: str = Field(..., max_length=255, description="Free-text server model.")
    ram_raw: str = Field("", max_length=100, description="RAM text as found in the source.")
    ram_size_gb: int = Field(0, ge=0, le=MAX_SIZE_GB, description="RAM size parsed from ram_raw.")
    storage_raw: str = Field("", max_length=255, description="Disk text as found in the source.")
    storage_total_gb: int = Field(
        0, ge=0, le=MAX_SIZE_GB, description="Total storage parsed from storage_raw."
    )
    disk_type: DiskType = Field(DiskType.UNKNOWN, description="Disk technology.")
    location: str = Field("", max_length=100, description="Datacenter code.")
    price_amount: str = Field("0", max_length=32, description="Exact decimal text of the price.")
    currency: Currency = Field(Currency.EUR, description="Currency tag, never converted.")

    model_config = {
        "frozen": True,
        "use_enum_values": False,
    }

    @field_validator("price_amount")
    @classmethod
    def _check_price_amount(cls, value: str) -> str:
        try:
            amount = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"price amount {value!r} is not a decimal number") from exc
        if not amount.is_finite() or amount < 0:
            raise ValueError(f"price amount {value!r} must be a non-negative number")
        exponent = amount.as_tuple().exponent
        if isinstance(exponent, int) and exponent < -2:
            raise ValueError(f"price amount {value!r} has more than 2 fractional digits")
        if amount > MAX_PRICE:
            raise ValueError(f"price amount {value!r} exceeds {MAX_PRICE}")
        return value

    @property
    def price_decimal(self) -> Decimal:
        return Decimal(self.price_amount)

    @property
    def natural_key(self) -> NaturalKey:
        return (self.model, self.location, self.storage_raw)

    @property
    def formatted_price(self) -> str:
        return f"{CURRENCY_SYMBOLS[self.currency]}{self.price_decimal:,.2f}"


class CatalogRecord(ServerListing):
    """
    A persisted listing. The id is assigned once by the store and never changes.
    """

    id: int = Field(..., ge=1, description="Store-assigned identifier.")

    @classmethod
    def from_listing(cls, record_id: int, listing: ServerListing) -> "CatalogRecord":
        return cls(id=record_id, **listing.model_dump())

    def to_listing(self) -> ServerListing:
        return ServerListing(**self.model_dump(exclude={"id"}))


class CatalogFilters(BaseModel):
    """
    Normalized filter set. Every present value is already validated; see
    `server_catalog.filters.normalize_filters`.
    """

    storage: Tuple[str, ...] = ()
    ram: Tuple[int, ...] = ()
    disk_type: Optional[DiskType] = None
    location: Optional[str] = None
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None

    model_config = {"frozen": True}

    def as_dict(self) -> Dict[str, Any]:
        """JSON-safe mapping of the active filters, keyed by request parameter name."""
        active: Dict[str, Any] = {}
        if self.storage:
            active["storage"] = list(self.storage)
        if self.ram:
            active["ram"] = [f"{size}GB" for size in self.ram]
        if self.disk_type is not None:
            active["diskType"] = self.disk_type.value
        if self.location is not None:
            active["location"] = self.location
        if self.price_min is not None:
            active["priceMin"] = _decimal_text(self.price_min)
        if self.price_max is not None:
            active["priceMax"] = _decimal_text(self.price_max)
        return active


class CatalogQuery(BaseModel):
    filters: CatalogFilters = Field(default_factory=CatalogFilters)
    sort: SortField = "price"
    order: SortOrder = "asc"
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)

    model_config = {"frozen": True}

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def signature(self) -> Dict[str, Any]:
        """Canonical, order-independent description of the query."""
        return {
            "f": self.filters.as_dict(),
            "s": [self.sort, self.order],
            "p": self.page,
            "l": self.limit,
        }


class QueryResult(BaseModel):
    """
    One page of records plus the total number of matches.
    """

    records: Tuple[CatalogRecord, ...] = ()
    total: int = Field(0, ge=0)
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)

    model_config = {"frozen": True}

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def meta(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


@dataclass(frozen=True)
class StorageRange:
    name: str
    label: str
    min_gb: int
    max_gb: Optional[int]

    def contains(self, size_gb: int) -> bool:
        if size_gb < self.min_gb:
            return False
        return self.max_gb is None or size_gb < self.max_gb


class StorageRangeOption(TypedDict):
    value: str
    label: str
    min: int
    max: Optional[int]


class RamOption(TypedDict):
    value: str
    label: str
    sizeGb: int


class FilterOptions(TypedDict):
    """Everything a filter UI needs to render its controls."""

    storage_ranges: List[StorageRangeOption]
    ram_options: List[RamOption]
    disk_types: List[str]
    locations: List[str]


@dataclass
class ImportSummary:
    """
    Aggregate outcome of one import run.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    processed: int = 0
    total_rows: int = 0
    dry_run: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "processed": self.processed,
            "total_rows": self.total_rows,
            "dry_run": self.dry_run,
        }


def _decimal_text(value: Decimal) -> str:
    # 10, 10.0 and 1E+1 all encode as "10"
    return format(value.normalize(), "f")


__all__ = [
    "CURRENCY_SYMBOLS",
    "CatalogFilters",
    "CatalogQuery",
    "CatalogRecord",
    "Currency",
    "DiskType",
    "FilterOptions",
    "ImportSummary",
    "MAX_PRICE",
    "MAX_SIZE_GB",
    "NaturalKey",
    "QueryResult",
    "RamOption",
    "ServerListing",
    "SortField",
    "SortOrder",
    "StorageRange",
    "StorageRangeOption",
    "UpsertOutcome",
]
