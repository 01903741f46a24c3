"""Database module."""

from .schema import init_db
from .operations import (
    ListingSink,
    SqliteListingSink,
    close_db,
    get_db,
    save_listing,
    save_listings,
    get_listing,
    get_all_listings,
    get_known_identifiers,
)

__all__ = [
    "init_db",
    "get_db",
    "close_db",
    "save_listing",
    "save_listings",
    "get_listing",
    "get_all_listings",
    "get_known_identifiers",
    "ListingSink",
    "SqliteListingSink",
]
