# SPDX-License-Identifier: MIT
"""Tests for the persistent cache adapter."""

import json
from unittest.mock import patch

import pytest

from offline_sync.cache import MemoryStorageDriver, PersistentCache


class TestPersistentCache:
    """Test cases for PersistentCache."""

    @pytest.mark.asyncio
    async def test_set_and_get_value(self, persistent_cache):
        """Test that a stored value is returned unchanged."""
        await persistent_cache.set("clients", [{"id": 1, "name": "A"}], ttl_millis=60_000)

        assert await persistent_cache.get("clients") == [{"id": 1, "name": "A"}]

    @pytest.mark.asyncio
    async def test_get_nonexistent_key_returns_none(self, persistent_cache):
        """Test that a missing key is reported as absent."""
        assert await persistent_cache.get("missing") is None
        assert await persistent_cache.get_entry("missing") is None

    @pytest.mark.asyncio
    async def test_entry_read_after_ttl_is_absent(self, persistent_cache, clock):
        """Test that an entry written with ttl 1000ms reads as absent after 1500ms."""
        await persistent_cache.set("draft", {"name": "A"}, ttl_millis=1000)

        clock.advance(1.5)

        assert await persistent_cache.get("draft") is None

    @pytest.mark.asyncio
    async def test_entry_read_within_ttl_is_present(self, persistent_cache, clock):
        """Test that an entry is still served before its TTL elapses."""
        await persistent_cache.set("draft", {"name": "A"}, ttl_millis=1000)

        clock.advance(0.5)

        assert await persistent_cache.get("draft") == {"name": "A"}

    @pytest.mark.asyncio
    async def test_expired_entry_is_deleted_on_read(
        self, persistent_cache, driver, clock
    ):
        """Test that reading an expired entry removes it from storage."""
        await persistent_cache.set("draft", "x", ttl_millis=1000)
        clock.advance(2)

        await persistent_cache.get("draft")

        assert await driver.read("draft") is None

    @pytest.mark.asyncio
    async def test_entry_without_ttl_never_expires(self, persistent_cache, clock):
        """Test that a None TTL keeps the entry indefinitely."""
        await persistent_cache.set("queue", [1, 2])
        clock.advance(10 * 365 * 24 * 3600)

        assert await persistent_cache.get("queue") == [1, 2]

    @pytest.mark.asyncio
    async def test_entry_records_storage_metadata(self, persistent_cache, clock):
        """Test that the stored entry carries its timestamp and TTL."""
        await persistent_cache.set("k", "v", ttl_millis=5000)

        entry = await persistent_cache.get_entry("k")

        assert entry is not None
        assert entry.key == "k"
        assert entry.stored_at == clock.now
        assert entry.ttl_millis == 5000

    @pytest.mark.asyncio
    async def test_delete_removes_entry(self, persistent_cache):
        """Test explicit deletion."""
        await persistent_cache.set("k", "v")
        await persistent_cache.delete("k")

        assert await persistent_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, persistent_cache):
        """Test that deleting an absent key does not raise."""
        await persistent_cache.delete("missing")

    @pytest.mark.asyncio
    async def test_empty_key_is_ignored(self, persistent_cache, driver):
        """Test that invalid keys never raise and never reach storage."""
        await persistent_cache.set("", "value")
        await persistent_cache.set("   ", "value")

        assert await persistent_cache.get("") is None
        assert await driver.keys() == []

    @pytest.mark.asyncio
    async def test_too_long_key_is_ignored(self, persistent_cache, driver):
        """Test that keys over the length limit are rejected silently."""
        await persistent_cache.set("x" * 256, "value")

        assert await driver.keys() == []

    @pytest.mark.asyncio
    async def test_non_positive_ttl_is_ignored(self, persistent_cache):
        """Test that zero or negative TTLs are not stored."""
        await persistent_cache.set("k", "v", ttl_millis=0)
        await persistent_cache.set("k2", "v", ttl_millis=-5)

        assert await persistent_cache.get("k") is None
        assert await persistent_cache.get("k2") is None

    @pytest.mark.asyncio
    async def test_unserializable_value_is_dropped(self, persistent_cache):
        """Test that a value JSON cannot encode is logged and dropped."""
        await persistent_cache.set("k", object())

        assert await persistent_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_discarded(self, persistent_cache, driver):
        """Test that unreadable stored data is treated as absent and removed."""
        await driver.write("k", json.dumps({"unexpected": True}))

        assert await persistent_cache.get("k") is None
        assert await driver.read("k") is None


class TestPersistentCacheDegradation:
    """Test cases for storage failures."""

    @pytest.mark.asyncio
    async def test_storage_failure_never_raises(self, persistent_cache, driver):
        """Test that a failing backend does not propagate errors."""
        driver.fail = True

        await persistent_cache.set("k", "v")
        assert await persistent_cache.get("k") == "v"
        await persistent_cache.delete("k")
        await persistent_cache.clear()
        assert await persistent_cache.clean_expired() == 0

    @pytest.mark.asyncio
    async def test_storage_failure_degrades_to_memory(self, persistent_cache, driver):
        """Test that after a failure writes land in memory, not the driver."""
        driver.fail = True
        await persistent_cache.set("k", "v")

        assert persistent_cache.degraded is True
        driver.fail = False
        assert await driver.read("k") is None
        assert await persistent_cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_storage_failure_is_logged_not_surfaced(self, driver, clock):
        """Test that the failure goes to the loggers."""
        cache = PersistentCache(driver, clock)
        driver.fail = True

        with patch("offline_sync.cache.persistent_cache.status_logger") as mock_status:
            await cache.set("a", 1)
            await cache.set("b", 2)

        # Only one user-facing warning per session
        assert mock_status.warning.call_count == 1


class TestCleanExpired:
    """Test cases for the expiry sweep."""

    @pytest.mark.asyncio
    async def test_clean_expired_removes_only_expired(self, driver, clock):
        """Test that the sweep removes expired entries and keeps live ones."""
        cache = PersistentCache(driver, clock)
        await cache.set("short", 1, ttl_millis=1000)
        await cache.set("long", 2, ttl_millis=60_000)
        await cache.set("forever", 3)

        clock.advance(5)
        removed = await cache.clean_expired()

        assert removed == 1
        assert sorted(await driver.keys()) == ["forever", "long"]

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, driver, clock):
        """Test that clear empties the store."""
        cache = PersistentCache(driver, clock)
        await cache.set("a", 1)
        await cache.set("b", 2)

        await cache.clear()

        assert await driver.keys() == []


@pytest.mark.asyncio
async def test_memory_driver_fail_switch():
    """Test that the memory driver simulates an unavailable backend."""
    from offline_sync.exceptions import StorageError

    driver = MemoryStorageDriver()
    driver.fail = True

    with pytest.raises(StorageError):
        await driver.write("k", "v")
