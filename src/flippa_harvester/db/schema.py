"""Database schema definitions."""

import sqlite3
from pathlib import Path

from ..config import config


SCHEMA = """
-- listings table, one row per listing identifier
CREATE TABLE IF NOT EXISTS listings (
    identifier TEXT PRIMARY KEY,
    synthetic_identifier INTEGER NOT NULL DEFAULT 0,
    url TEXT,
    title TEXT,
    category TEXT,
    price INTEGER,
    monthly_recurring_value INTEGER,
    recurring_basis TEXT,
    multiple REAL,
    multiple_basis TEXT,
    multiple_derived INTEGER NOT NULL DEFAULT 0,
    badges JSON,
    extraction_confidence INTEGER,
    extraction_method TEXT,
    page_number INTEGER,
    raw_data JSON,
    first_seen_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    last_seen_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Create indexes for common queries
CREATE INDEX IF NOT EXISTS idx_listings_first_seen ON listings(first_seen_at);
CREATE INDEX IF NOT EXISTS idx_listings_category ON listings(category);
"""


def init_db(db_path: Path | None = None) -> sqlite3.Connection:
    """Initialize the database with schema.

    Args:
        db_path: Optional path to database. Uses config default if not provided.

    Returns:
        Connection to the initialized database.
    """
    if db_path is None:
        db_path = config.db_path
        config.ensure_dirs()

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    conn.commit()
    return conn
