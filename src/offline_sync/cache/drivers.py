# SPDX-License-Identifier: MIT
"""Key-value persistence drivers.

Drivers are opaque async stores of strings. They know nothing about TTLs or
serialization; `PersistentCache` layers both on top. A driver signals an
unavailable backend by raising `StorageError`.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..exceptions import StorageError
from ..logging_config import get_detail_logger
from .connection_utils import get_configured_connection
from .schema import init_database


detail_logger = get_detail_logger()


@runtime_checkable
class StorageDriver(Protocol):
    """Async string key-value store."""

    async def read(self, key: str) -> str | None: ...

    async def write(self, key: str, raw: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def keys(self) -> list[str]: ...

    async def clear(self) -> None: ...


class MemoryStorageDriver:
    """Dict-backed driver; nothing survives the process.

    Setting ``fail`` makes every operation raise `StorageError`, which is how
    tests simulate a disabled or full backend.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise StorageError("Memory storage disabled")

    async def read(self, key: str) -> str | None:
        self._check()
        return self._data.get(key)

    async def write(self, key: str, raw: str) -> None:
        self._check()
        self._data[key] = raw

    async def remove(self, key: str) -> None:
        self._check()
        self._data.pop(key, None)

    async def keys(self) -> list[str]:
        self._check()
        return list(self._data)

    async def clear(self) -> None:
        self._check()
        self._data.clear()


class SQLiteStorageDriver:
    """Durable driver backed by a single SQLite table.

    Blocking sqlite3 calls run in a worker thread so the event loop is never
    stalled by disk I/O.
    """

    def __init__(self, db_path: Path):
        """Initialize the driver, creating the database file if needed.

        Args:
            db_path: Path to the SQLite database file

        Raises:
            StorageError: If the directory or schema cannot be created
        """
        self.db_path = db_path
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            init_database(db_path)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to initialize database at {db_path}") from e
        detail_logger.debug(f"SQLite storage ready at {db_path}")

    def _read(self, key: str) -> str | None:
        with get_configured_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None

    def _write(self, key: str, raw: str) -> None:
        with get_configured_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (key, raw),
            )
            conn.commit()

    def _remove(self, key: str) -> None:
        with get_configured_connection(self.db_path) as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def _keys(self) -> list[str]:
        with get_configured_connection(self.db_path) as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv_store")]

    def _clear(self) -> None:
        with get_configured_connection(self.db_path) as conn:
            conn.execute("DELETE FROM kv_store")
            conn.commit()

    async def _run(self, operation: str, func, *args):  # type: ignore[no-untyped-def]
        try:
            return await asyncio.to_thread(func, *args)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"SQLite {operation} failed: {e}") from e

    async def read(self, key: str) -> str | None:
        return await self._run("read", self._read, key)  # type: ignore[no-any-return]

    async def write(self, key: str, raw: str) -> None:
        await self._run("write", self._write, key, raw)

    async def remove(self, key: str) -> None:
        await self._run("remove", self._remove, key)

    async def keys(self) -> list[str]:
        return await self._run("keys", self._keys)  # type: ignore[no-any-return]

    async def clear(self) -> None:
        await self._run("clear", self._clear)
