"""
Parsers for the free-text RAM, disk and price columns of server spreadsheets.

Every parser is total: unparseable text yields a safe default instead of an
exception. `parse_listing` is the one place raw fields become a
`ServerListing`; the seed loader and the spreadsheet importer both go through it.

Examples
--------
    parse_ram_gb("16GBDDR3")        -> 16
    parse_storage_gb("2x2TBSATA2")  -> 4000
    parse_disk_type("4x480GBSSD")   -> DiskType.SSD
    parse_price("S$565.99")         -> ParsedPrice(amount="565.99", currency=Currency.SGD)
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from server_catalog.domain.models import Currency, DiskType, ServerListing

_RAM_PATTERN = re.compile(r"(\d+)GB", re.IGNORECASE)
_STORAGE_PATTERN = re.compile(r"(\d+)x(\d+)(GB|TB)", re.IGNORECASE)
_NON_AMOUNT_CHARS = re.compile(r"[^0-9.]")

# SSD and SAS are checked before SATA; keep this order.
_DISK_TYPE_PRIORITY = (DiskType.SSD, DiskType.SAS, DiskType.SATA)

# "S$" must be tested before "$".
_CURRENCY_PREFIXES = (
    ("S$", Currency.SGD),
    ("$", Currency.USD),
    ("€", Currency.EUR),
)

GB_PER_TB = 1000


class ParsedPrice(NamedTuple):
    amount: str
    currency: Currency


def parse_ram_gb(text: Optional[str]) -> int:
    """Return the first integer directly followed by "GB", or 0."""
    match = _RAM_PATTERN.search(text or "")
    return int(match.group(1)) if match else 0


def parse_storage_gb(text: Optional[str]) -> int:
    """
    Return total storage in GB for "<count>x<size><GB|TB>" text, or 0.

    TB is normalized with a factor of 1000, so "8x2TBSATA2" is 16000.
    """
    match = _STORAGE_PATTERN.search(text or "")
    if not match:
        return 0
    count = int(match.group(1))
    size = int(match.group(2))
    if match.group(3).upper() == "TB":
        size *= GB_PER_TB
    return count * size


def parse_disk_type(text: Optional[str]) -> DiskType:
    upper = (text or "").upper()
    for disk_type in _DISK_TYPE_PRIORITY:
        if disk_type.value in upper:
            return disk_type
    return DiskType.UNKNOWN


def parse_price(text: Optional[str]) -> ParsedPrice:
    """
    Split a price cell into its amount text and currency.

    The currency comes from the prefix; no symbol means EUR. The amount keeps
    only digits and dots from the whole string, so the result is best-effort
    ("1.2.3" stays "1.2.3" and is rejected later by listing validation).
    """
    price = (text or "").strip()
    currency = Currency.EUR
    for prefix, candidate in _CURRENCY_PREFIXES:
        if price.startswith(prefix):
            currency = candidate
            break
    amount = _NON_AMOUNT_CHARS.sub("", price) or "0"
    return ParsedPrice(amount=amount, currency=currency)


def parse_listing(
    model: Optional[str],
    ram: Optional[str],
    storage: Optional[str],
    location: Optional[str],
    price: Optional[str],
) -> ServerListing:
    """
    Build a validated listing from the five raw spreadsheet fields.

    Raises
    ------
    pydantic.ValidationError
        If the derived price amount is not a non-negative decimal with at most
        two fractional digits.
    """
    ram_raw = (ram or "").strip()
    storage_raw = (storage or "").strip()
    parsed_price = parse_price(price)
    return ServerListing(
        model=(model or "").strip(),
        ram_raw=ram_raw,
        ram_size_gb=parse_ram_gb(ram_raw),
        storage_raw=storage_raw,
        storage_total_gb=parse_storage_gb(storage_raw),
        disk_type=parse_disk_type(storage_raw),
        location=(location or "").strip(),
        price_amount=parsed_price.amount,
        currency=parsed_price.currency,
    )


__all__ = [
    "GB_PER_TB",
    "ParsedPrice",
    "parse_disk_type",
    "parse_listing",
    "parse_price",
    "parse_ram_gb",
    "parse_storage_gb",
]
