"""Database operations."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Protocol

from ..models.listing import ListingRecord
from .schema import init_db

logger = logging.getLogger(__name__)


_connection: sqlite3.Connection | None = None


UPSERT_SQL = """
INSERT INTO listings (
    identifier, synthetic_identifier, url, title, category,
    price, monthly_recurring_value, recurring_basis,
    multiple, multiple_basis, multiple_derived, badges,
    extraction_confidence, extraction_method, page_number, raw_data, last_seen_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT(identifier) DO UPDATE SET
    url = excluded.url,
    title = excluded.title,
    category = excluded.category,
    price = excluded.price,
    monthly_recurring_value = excluded.monthly_recurring_value,
    recurring_basis = excluded.recurring_basis,
    multiple = excluded.multiple,
    multiple_basis = excluded.multiple_basis,
    multiple_derived = excluded.multiple_derived,
    badges = excluded.badges,
    extraction_confidence = excluded.extraction_confidence,
    extraction_method = excluded.extraction_method,
    page_number = excluded.page_number,
    raw_data = excluded.raw_data,
    updated_at = CURRENT_TIMESTAMP,
    last_seen_at = CURRENT_TIMESTAMP
"""


class ListingSink(Protocol):
    """Anything that can store a batch of records idempotently."""

    def upsert_many(self, records: list[ListingRecord]) -> int:
        ...


def get_db(db_path: Path | None = None) -> sqlite3.Connection:
    """Get database connection, initializing if needed.

    Args:
        db_path: Optional path to database. Uses config default if not provided.

    Returns:
        Database connection.
    """
    global _connection
    if _connection is None:
        _connection = init_db(db_path)
    return _connection


def close_db() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None


def _record_params(record: ListingRecord) -> tuple:
    return (
        record.identifier,
        int(record.synthetic_identifier),
        record.url,
        record.title,
        record.category,
        record.price,
        record.monthly_recurring_value,
        record.recurring_basis,
        record.multiple,
        record.multiple_basis,
        int(record.multiple_derived),
        json.dumps(record.badges) if record.badges else None,
        record.extraction_confidence,
        record.extraction_method,
        record.page_number,
        json.dumps(record.raw_data) if record.raw_data else None,
    )


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data["badges"] = json.loads(data["badges"]) if data.get("badges") else []
    data["raw_data"] = json.loads(data["raw_data"]) if data.get("raw_data") else None
    return data


def save_listing(record: ListingRecord) -> bool:
    """Save or update a single listing.

    Args:
        record: The listing to store.

    Returns:
        True if this was a new listing, False if an existing row was updated.
    """
    conn = get_db()
    is_new = get_listing(record.identifier) is None
    conn.execute(UPSERT_SQL, _record_params(record))
    conn.commit()
    return is_new


def save_listings(records: Iterable[ListingRecord]) -> int:
    """Upsert a batch of listings in one transaction.

    Args:
        records: Listings to store.

    Returns:
        Number of rows written.
    """
    params = [_record_params(record) for record in records]
    if not params:
        return 0
    conn = get_db()
    with conn:
        conn.executemany(UPSERT_SQL, params)
    logger.debug(f"Upserted {len(params)} listings")
    return len(params)


def get_listing(identifier: str) -> dict[str, Any] | None:
    """Get a listing by identifier.

    Args:
        identifier: The listing identifier.

    Returns:
        Listing data as dict, or None if not found.
    """
    conn = get_db()
    row = conn.execute("SELECT * FROM listings WHERE identifier = ?", (identifier,)).fetchone()
    if row is None:
        return None
    return _row_to_dict(row)


def get_all_listings(category: str | None = None) -> list[dict[str, Any]]:
    """Get all listings, optionally filtered by category.

    Args:
        category: Optional category filter (exact match).

    Returns:
        List of listing dicts.
    """
    conn = get_db()
    if category:
        rows = conn.execute(
            "SELECT * FROM listings WHERE category = ? ORDER BY first_seen_at DESC",
            (category,),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM listings ORDER BY first_seen_at DESC"
        ).fetchall()
    return [_row_to_dict(row) for row in rows]


def get_known_identifiers(include_synthetic: bool = False) -> set[str]:
    """Identifiers already stored, for skipping known listings.

    Args:
        include_synthetic: Also return synthetic fallback identifiers.

    Returns:
        Set of identifiers.
    """
    conn = get_db()
    sql = "SELECT identifier FROM listings"
    if not include_synthetic:
        sql += " WHERE synthetic_identifier = 0"
    return {row["identifier"] for row in conn.execute(sql).fetchall()}


class SqliteListingSink:
    """ListingSink backed by the module-level SQLite connection."""

    def __init__(self, db_path: Path | None = None):
        get_db(db_path)

    def upsert_many(self, records: list[ListingRecord]) -> int:
        return save_listings(records)

    def close(self) -> None:
        close_db()
