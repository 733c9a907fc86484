# SPDX-License-Identifier: MIT
"""Tests for the SQLite storage driver."""

import sqlite3
from unittest.mock import patch

import pytest

from offline_sync.cache import PersistentCache, SQLiteStorageDriver
from offline_sync.exceptions import StorageError


@pytest.fixture
def sqlite_driver(tmp_path):
    """Create a driver on a temporary database file."""
    return SQLiteStorageDriver(tmp_path / "store" / "test.db")


class TestSQLiteStorageDriver:
    """Test cases for SQLiteStorageDriver."""

    def test_init_creates_database(self, tmp_path):
        """Test that the database file and parent directory are created."""
        db_path = tmp_path / "nested" / "dir" / "cache.db"

        SQLiteStorageDriver(db_path)

        assert db_path.exists()
        with sqlite3.connect(db_path) as conn:
            tables = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        assert "kv_store" in tables

    def test_init_failure_raises_storage_error(self, tmp_path):
        """Test that an unusable path surfaces as StorageError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(StorageError):
            SQLiteStorageDriver(blocker / "cache.db")

    @pytest.mark.asyncio
    async def test_write_read_roundtrip(self, sqlite_driver):
        """Test that a written value is read back."""
        await sqlite_driver.write("k", '{"a": 1}')

        assert await sqlite_driver.read("k") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_write_overwrites(self, sqlite_driver):
        """Test that writing an existing key replaces its value."""
        await sqlite_driver.write("k", "1")
        await sqlite_driver.write("k", "2")

        assert await sqlite_driver.read("k") == "2"
        assert await sqlite_driver.keys() == ["k"]

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, sqlite_driver):
        """Test key removal and full clear."""
        await sqlite_driver.write("a", "1")
        await sqlite_driver.write("b", "2")

        await sqlite_driver.remove("a")
        assert await sqlite_driver.read("a") is None

        await sqlite_driver.clear()
        assert await sqlite_driver.keys() == []

    @pytest.mark.asyncio
    async def test_sqlite_error_becomes_storage_error(self, sqlite_driver):
        """Test that sqlite failures are wrapped."""
        with patch(
            "offline_sync.cache.drivers.get_configured_connection",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            with pytest.raises(StorageError, match="database is locked"):
                await sqlite_driver.read("k")

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        """Test that data persists across driver instances."""
        db_path = tmp_path / "cache.db"
        cache = PersistentCache(SQLiteStorageDriver(db_path))
        await cache.set("queue", [{"id": "a"}])

        reopened = PersistentCache(SQLiteStorageDriver(db_path))

        assert await reopened.get("queue") == [{"id": "a"}]
