# SPDX-License-Identifier: MIT
"""In-memory query cache shared by the UI, the optimistic manager and the coordinator."""

import asyncio
import copy
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from ..constants import QUERY_CACHE_SNAPSHOT_KEY, SNAPSHOT_TTL_MILLIS
from ..logging_config import get_detail_logger
from .persistent_cache import PersistentCache


detail_logger = get_detail_logger()


@dataclass(frozen=True)
class Present:
    """Snapshot of a key that held a value (possibly None or empty)."""

    value: Any


@dataclass(frozen=True)
class Absent:
    """Snapshot of a key that held no value at all."""


Snapshot = Present | Absent

InvalidationListener = Callable[[str], None]


class QueryCache:
    """Keyed cache of query results with in-flight fetch tracking.

    Keys are opaque strings. Invalidation marks keys stale and notifies
    listeners; it never drops data, so the UI keeps rendering the last known
    value until a refetch lands.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._stale: set[str] = set()
        self._inflight: dict[str, set[asyncio.Task[Any]]] = {}
        self._listeners: list[InvalidationListener] = []

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def snapshot(self, key: str) -> Snapshot:
        """Capture a key's current state as an explicit Present/Absent variant."""
        if key in self._data:
            return Present(copy.deepcopy(self._data[key]))
        return Absent()

    def restore(self, key: str, snapshot: Snapshot) -> None:
        """Put a key back into exactly the state captured by `snapshot`."""
        if isinstance(snapshot, Present):
            self._data[key] = copy.deepcopy(snapshot.value)
        else:
            self._data.pop(key, None)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def update(self, key: str, updater: Callable[[Any], Any]) -> Any:
        """Replace a key's value with ``updater(current)``; current is None if absent."""
        value = updater(self._data.get(key))
        self._data[key] = value
        return value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
        self._stale.discard(key)

    def is_stale(self, key: str) -> bool:
        return key in self._stale

    def is_fetching(self, key: str) -> bool:
        return bool(self._inflight.get(key))

    async def _run_fetch(
        self, key: str, fetcher: Callable[[], Awaitable[Any]]
    ) -> Any:
        value = await fetcher()
        # Only reached when the fetch was not cancelled
        self._data[key] = value
        self._stale.discard(key)
        return value

    async def fetch(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``fetcher`` and store its result under ``key``.

        If the fetch is cancelled through `cancel`, nothing is written and the
        value currently cached for the key is returned instead.
        """
        task = asyncio.create_task(self._run_fetch(key, fetcher))
        tasks = self._inflight.setdefault(key, set())
        tasks.add(task)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            tasks.discard(task)
            if not tasks:
                self._inflight.pop(key, None)

        if task.cancelled():
            detail_logger.debug(f"Fetch for '{key}' was cancelled")
            return self._data.get(key)
        return task.result()

    async def cancel(self, key: str) -> int:
        """Cancel every in-flight fetch for ``key`` and wait for them to stop.

        Returns:
            Number of fetches cancelled
        """
        tasks = list(self._inflight.get(key, ()))
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            detail_logger.debug(f"Cancelled {len(tasks)} in-flight fetch(es) for '{key}'")
        return len(tasks)

    def subscribe(self, listener: InvalidationListener) -> Callable[[], None]:
        """Register an invalidation listener; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def invalidate(self, keys: str | Iterable[str] | None = None) -> list[str]:
        """Mark keys stale and notify listeners.

        Args:
            keys: A key, several keys, or None for every cached key

        Returns:
            The keys that were invalidated
        """
        if keys is None:
            targets = list(self._data)
        elif isinstance(keys, str):
            targets = [keys]
        else:
            targets = list(keys)

        for key in targets:
            self._stale.add(key)
            for listener in list(self._listeners):
                try:
                    listener(key)
                except Exception as e:
                    detail_logger.exception(
                        f"Invalidation listener failed for '{key}': {e}"
                    )
        return targets

    async def persist(
        self, cache: PersistentCache, ttl_millis: int = SNAPSHOT_TTL_MILLIS
    ) -> None:
        """Write the whole cache as one snapshot entry."""
        await cache.set(QUERY_CACHE_SNAPSHOT_KEY, dict(self._data), ttl_millis)
        detail_logger.debug(f"Persisted query cache snapshot ({len(self._data)} keys)")

    async def load(self, cache: PersistentCache) -> int:
        """Restore the persisted snapshot; restored keys start out stale.

        Returns:
            Number of keys restored
        """
        data = await cache.get(QUERY_CACHE_SNAPSHOT_KEY)
        if not isinstance(data, dict):
            return 0
        for key, value in data.items():
            self._data.setdefault(key, value)
            self._stale.add(key)
        detail_logger.debug(f"Restored {len(data)} keys from query cache snapshot")
        return len(data)
