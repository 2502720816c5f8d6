"""
Validation and normalization of untrusted query parameters.

Filter UIs only ever send values from the option lists below, so anything else
is treated as "no preference": invalid filter values are dropped and invalid
sort/pagination values fall back to their defaults. Nothing here raises for
bad input.

The normalized `CatalogQuery` produced by `normalize_query` is also the basis
of the query cache key, which is why multi-valued filters are de-duplicated
and put in a canonical order.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from server_catalog.domain.models import (
    CatalogFilters,
    CatalogQuery,
    DiskType,
    FilterOptions,
    RamOption,
    SortField,
    SortOrder,
    StorageRange,
    StorageRangeOption,
)

STORAGE_RANGES: Dict[str, StorageRange] = {
    bucket.name: bucket
    for bucket in (
        StorageRange("0-250GB", "0 - 250 GB", 0, 250),
        StorageRange("250GB-500GB", "250 - 500 GB", 250, 500),
        StorageRange("500GB-1TB", "500 GB - 1 TB", 500, 1000),
        StorageRange("1TB-2TB", "1 - 2 TB", 1000, 2000),
        StorageRange("2TB-3TB", "2 - 3 TB", 2000, 3000),
        StorageRange("3TB-4TB", "3 - 4 TB", 3000, 4000),
        StorageRange("4TB-8TB", "4 - 8 TB", 4000, 8000),
        StorageRange("8TB-12TB", "8 - 12 TB", 8000, 12000),
        StorageRange("12TB-24TB", "12 - 24 TB", 12000, 24000),
        StorageRange("24TB-48TB", "24 - 48 TB", 24000, 48000),
        StorageRange("48TB-72TB", "48 - 72 TB", 48000, 72000),
        StorageRange("72TB+", "72 TB+", 72000, None),
    )
}

RAM_OPTIONS: Tuple[int, ...] = (2, 4, 8, 12, 16, 24, 32, 48, 64, 96, 128)
DISK_TYPES: Tuple[str, ...] = (DiskType.SAS.value, DiskType.SATA.value, DiskType.SSD.value)
SORT_FIELDS: Tuple[str, ...] = ("price", "ram", "storage", "model")
SORT_ORDERS: Tuple[str, ...] = ("asc", "desc")

DEFAULT_SORT: SortField = "price"
DEFAULT_ORDER: SortOrder = "asc"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# OFFSET is a bigint in PostgreSQL.
MAX_OFFSET = 2**63 - 1

_NON_DIGITS = re.compile(r"[^0-9]")


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _first_present(params: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = params.get(name)
        if value is not None:
            return value
    return None


def _coerce_int(value: Any, default: int) -> int:
    """Best-effort integer conversion ("3", 3.9 and "3.9" all give 3)."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def storage_range(name: str) -> Optional[StorageRange]:
    return STORAGE_RANGES.get(name.replace(" ", "").upper())


def normalize_storage_ranges(values: Any) -> Tuple[str, ...]:
    """Keep known bucket names, de-duplicated, in bucket order."""
    selected = set()
    for value in _as_list(values):
        bucket = storage_range(str(value))
        if bucket is not None:
            selected.add(bucket.name)
    return tuple(name for name in STORAGE_RANGES if name in selected)


def normalize_ram_sizes(values: Any) -> Tuple[int, ...]:
    """Accept "16GB", "16 gb", "16" or 16; keep only whitelisted sizes, ascending."""
    selected = set()
    for value in _as_list(values):
        digits = _NON_DIGITS.sub("", str(value))
        if digits and int(digits) in RAM_OPTIONS:
            selected.add(int(digits))
    return tuple(sorted(selected))


def normalize_disk_type(value: Any) -> Optional[DiskType]:
    if not isinstance(value, str):
        return None
    candidate = value.strip().upper()
    return DiskType(candidate) if candidate in DISK_TYPES else None


def normalize_price_bound(value: Any) -> Optional[Decimal]:
    """A bound is kept only if it is a finite number >= 0; it is never clamped."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def normalize_filters(params: Mapping[str, Any]) -> CatalogFilters:
    location = params.get("location")
    location = str(location).strip() if location is not None else ""
    return CatalogFilters(
        storage=normalize_storage_ranges(params.get("storage")),
        ram=normalize_ram_sizes(params.get("ram")),
        disk_type=normalize_disk_type(_first_present(params, "diskType", "hddType")),
        location=location or None,
        price_min=normalize_price_bound(params.get("priceMin")),
        price_max=normalize_price_bound(params.get("priceMax")),
    )


def normalize_sorting(params: Mapping[str, Any]) -> Tuple[SortField, SortOrder]:
    sort = str(params.get("sort") or DEFAULT_SORT).strip().lower()
    order = str(params.get("order") or DEFAULT_ORDER).strip().lower()
    if sort not in SORT_FIELDS:
        sort = DEFAULT_SORT
    if order not in SORT_ORDERS:
        order = DEFAULT_ORDER
    return sort, order  # type: ignore[return-value]


def normalize_pagination(
    params: Mapping[str, Any],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> Tuple[int, int]:
    """
    Return (page, limit) with page >= 1 and 1 <= limit <= max_limit.

    Pages past the last representable offset are clamped to it; they are
    empty either way.
    """
    limit = min(max_limit, max(1, _coerce_int(params.get("limit"), default_limit)))
    page = max(1, _coerce_int(params.get("page"), DEFAULT_PAGE))
    page = min(page, MAX_OFFSET // limit + 1)
    return page, limit


def normalize_query(
    params: Mapping[str, Any],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> CatalogQuery:
    sort, order = normalize_sorting(params)
    page, limit = normalize_pagination(params, default_limit=default_limit, max_limit=max_limit)
    return CatalogQuery(
        filters=normalize_filters(params),
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )


def filter_options(locations: Iterable[str]) -> FilterOptions:
    storage_ranges: List[StorageRangeOption] = [
        StorageRangeOption(value=b.name, label=b.label, min=b.min_gb, max=b.max_gb)
        for b in STORAGE_RANGES.values()
    ]
    ram_options: List[RamOption] = [
        RamOption(value=f"{size}GB", label=f"{size} GB", sizeGb=size) for size in RAM_OPTIONS
    ]
    return FilterOptions(
        storage_ranges=storage_ranges,
        ram_options=ram_options,
        disk_types=list(DISK_TYPES),
        locations=list(locations),
    )


__all__ = [
    "DEFAULT_LIMIT",
    "DISK_TYPES",
    "MAX_LIMIT",
    "MAX_OFFSET",
    "RAM_OPTIONS",
    "SORT_FIELDS",
    "SORT_ORDERS",
    "STORAGE_RANGES",
    "filter_options",
    "normalize_disk_type",
    "normalize_filters",
    "normalize_pagination",
    "normalize_price_bound",
    "normalize_query",
    "normalize_ram_sizes",
    "normalize_sorting",
    "normalize_storage_ranges",
    "storage_range",
]
