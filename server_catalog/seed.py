"""
JSON seed loader.

The seed file is a list of objects with the raw `model`, `ram`, `hdd`,
`location` and `price` strings, e.g.

    [{"model": "Dell R210Intel Xeon X3440", "ram": "16GBDDR3",
      "hdd": "2x2TBSATA2", "location": "AmsterdamAMS-01", "price": "€49.99"}]

Entries go through the same parser as spreadsheet rows and are written with a
single batch upsert, so loading a seed twice does not duplicate records.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from server_catalog.domain.models import ServerListing
from server_catalog.parsing import parse_listing
from server_catalog.store.abstract import CatalogStore
from server_catalog.utils.logging import get_logger

log = get_logger(__name__)


def read_seed(path: str | os.PathLike[str]) -> List[ServerListing]:
    """
    Parse the seed file into listings.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the JSON document is not a list of objects.
    """
    seed_path = Path(path)
    with seed_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("Invalid servers data format")

    listings: List[ServerListing] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid servers data format: entry {index} is not an object")
        item: Dict[str, Any] = entry
        listings.append(
            parse_listing(
                model=str(item.get("model", "")),
                ram=str(item.get("ram", "")),
                storage=str(item.get("hdd", "")),
                location=str(item.get("location", "")),
                price=str(item.get("price", "")),
            )
        )
    return listings


def load_seed(path: str | os.PathLike[str], store: CatalogStore) -> int:
    """Load the seed file into the store; returns the number of entries written."""
    listings = read_seed(path)
    outcomes = store.upsert_batch(listings)
    log.info(
        "Seed loaded",
        extra={
            "path": str(path),
            "entries": len(listings),
            "created": outcomes.count("created"),
            "updated": outcomes.count("updated"),
        },
    )
    return len(listings)


__all__ = ["load_seed", "read_seed"]
