"""
Utilities package for the server catalog.

Exports shared helpers for logging and profiling. Keep this package
lightweight and free of catalog-specific logic.
"""

from server_catalog.utils.logging import configure_logging, get_logger
from server_catalog.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
