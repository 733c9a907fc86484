# SPDX-License-Identifier: MIT
"""SQLite connection configuration for the durable key-value store.

`get_configured_connection()` should be used instead of direct
`sqlite3.connect()` calls so every connection gets the same WAL mode,
timeout and PRAGMA settings.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..logging_config import get_detail_logger


detail_logger = get_detail_logger()


def configure_sqlite_connection(
    conn: sqlite3.Connection,
    enable_wal: bool = True,
) -> None:
    """Apply consistent PRAGMA settings to a connection.

    Args:
        conn: SQLite database connection to configure
        enable_wal: Whether to enable WAL mode (default: True)
    """
    if enable_wal:
        conn.execute("PRAGMA journal_mode = WAL")

    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA temp_store = MEMORY")


@contextmanager
def get_configured_connection(
    db_path: str | Path,
    timeout: float = 30.0,
    enable_wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Get a configured SQLite connection that is closed on exit.

    Args:
        db_path: Path to the SQLite database file
        timeout: Connection timeout in seconds (default: 30.0)
        enable_wal: Whether to enable WAL mode (default: True)

    Yields:
        Configured SQLite connection
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)

    try:
        configure_sqlite_connection(conn, enable_wal=enable_wal)
        yield conn
    finally:
        conn.close()
