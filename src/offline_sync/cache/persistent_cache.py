# SPDX-License-Identifier: MIT
"""TTL-validating persistent cache that never raises to its callers."""

import json
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from ..constants import MAX_CACHE_KEY_LENGTH
from ..exceptions import StorageError
from ..logging_config import get_detail_logger, get_status_logger
from ..models import CacheEntry
from .drivers import MemoryStorageDriver, StorageDriver


detail_logger = get_detail_logger()
status_logger = get_status_logger()


class PersistentCache:
    """Async key-value cache with per-entry TTL on top of a storage driver.

    Entries are validated lazily: an entry older than its TTL is reported as
    absent and deleted on read. When the driver raises `StorageError` the
    cache switches to an in-memory driver for the rest of the session, so
    writes keep working but nothing survives a reload.
    """

    def __init__(
        self,
        driver: StorageDriver,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            driver: Backing key-value store
            clock: Returns the current time in epoch seconds
        """
        self._driver: StorageDriver = driver
        self._clock = clock
        self.degraded = False

    def _degrade(self, operation: str, key: str | None, error: StorageError) -> None:
        detail_logger.exception(
            f"Storage {operation} failed for key '{key}': {error}"
        )
        if not self.degraded:
            status_logger.warning(
                "Persistent storage unavailable; changes are kept in memory "
                "for this session only"
            )
            self.degraded = True
            self._driver = MemoryStorageDriver()

    @staticmethod
    def _valid_key(key: str) -> bool:
        if not key or not key.strip():
            detail_logger.error("Cache key cannot be empty")
            return False
        if len(key) > MAX_CACHE_KEY_LENGTH:
            detail_logger.error(
                f"Cache key exceeds maximum length ({MAX_CACHE_KEY_LENGTH} characters)"
            )
            return False
        return True

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Get the full entry for a key, or None if absent or expired."""
        if not self._valid_key(key):
            return None

        try:
            raw = await self._driver.read(key)
        except StorageError as e:
            self._degrade("read", key, e)
            raw = await self._driver.read(key)

        if raw is None:
            detail_logger.debug(f"Cache miss for key '{key}'")
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            detail_logger.warning(f"Discarding corrupt cache entry '{key}': {e}")
            await self.delete(key)
            return None

        if entry.is_expired(self._clock()):
            detail_logger.debug(f"Cache entry '{key}' expired")
            await self.delete(key)
            return None

        detail_logger.debug(f"Cache hit for key '{key}'")
        return entry

    async def get(self, key: str) -> Any:
        """Get a cached value, or None if absent or expired."""
        entry = await self.get_entry(key)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: Any, ttl_millis: int | None = None) -> None:
        """Store a value with an optional TTL in milliseconds.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl_millis: Time-to-live; None keeps the entry until deleted
        """
        if not self._valid_key(key):
            return
        if ttl_millis is not None and ttl_millis <= 0:
            detail_logger.error(f"Ignoring write of '{key}': TTL must be positive")
            return

        try:
            entry = CacheEntry(
                key=key, value=value, stored_at=self._clock(), ttl_millis=ttl_millis
            )
            raw = json.dumps(entry.model_dump(mode="json"))
        except (TypeError, ValueError) as e:
            detail_logger.error(f"Ignoring write of '{key}': value not serializable: {e}")
            return

        try:
            await self._driver.write(key, raw)
        except StorageError as e:
            self._degrade("write", key, e)
            await self._driver.write(key, raw)
        detail_logger.debug(f"Stored cache entry: key='{key}', ttl_millis={ttl_millis}")

    async def delete(self, key: str) -> None:
        """Delete a key; deleting an absent key is a no-op."""
        if not self._valid_key(key):
            return
        try:
            await self._driver.remove(key)
        except StorageError as e:
            self._degrade("delete", key, e)
            await self._driver.remove(key)

    async def clear(self) -> None:
        """Delete every entry."""
        try:
            await self._driver.clear()
        except StorageError as e:
            self._degrade("clear", None, e)

    async def clean_expired(self) -> int:
        """Delete every expired entry.

        Reads already treat expired entries as absent; this sweep only
        reclaims space.

        Returns:
            Number of entries removed
        """
        try:
            keys = await self._driver.keys()
        except StorageError as e:
            self._degrade("sweep", None, e)
            return 0

        removed = 0
        for key in keys:
            if await self.get_entry(key) is None:
                removed += 1
        if removed:
            detail_logger.info(f"Removed {removed} expired cache entries")
        return removed
