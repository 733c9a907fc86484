# SPDX-License-Identifier: MIT
"""Database schema initialization for the durable key-value store."""

import sqlite3
from pathlib import Path


def init_database(db_path: Path) -> None:
    """Create the key-value table if it does not exist.

    Args:
        db_path: Path to the SQLite database file
    """
    with sqlite3.connect(db_path) as conn:
        conn.executescript(
            """
            -- Serialized cache entries (JSON encoded CacheEntry records)
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        conn.commit()
