"""Database schema for memoshare SQLite storage.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Database initialization (init_db)
"""

import sqlite3

from ..logging_config import get_logger

logger = get_logger("memoshare.schema")

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    salt TEXT NOT NULL,
    last_access TEXT
);

CREATE TABLE IF NOT EXISTS memos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user INTEGER NOT NULL REFERENCES users(id),
    title TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL,
    is_private INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Public feed: WHERE is_private=0 ORDER BY created_at DESC, id DESC
CREATE INDEX IF NOT EXISTS idx_memos_feed ON memos(is_private, created_at, id);
-- Owner listing and sibling lookup
CREATE INDEX IF NOT EXISTS idx_memos_owner ON memos(user, created_at, id);
"""


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if missing and record the schema version."""
    conn.executescript(SCHEMA)

    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.info(f"Initialized database schema v{SCHEMA_VERSION}")
    elif row[0] != SCHEMA_VERSION:
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
        logger.info(f"Schema version {row[0]} -> {SCHEMA_VERSION}")
    conn.commit()
