# SPDX-License-Identifier: MIT
"""Session facade wiring storage, queue, coordinator and optimistic updates."""

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .cache import (
    MemoryStorageDriver,
    PersistentCache,
    QueryCache,
    SQLiteStorageDriver,
    StorageDriver,
)
from .config import AppConfig, get_config_manager
from .connectivity import (
    ConnectivitySource,
    HttpProbeConnectivitySource,
    IntervalTrigger,
    ManualConnectivitySource,
)
from .constants import STORAGE_NAMESPACE
from .enums import ActionType
from .exceptions import StorageError
from .http_executor import ActionExecutor, HttpActionExecutor
from .logging_config import get_detail_logger, get_status_logger
from .models import PendingAction, SyncResult, SyncState
from .notifications import LoggingNotificationSink, NotificationSink
from .optimistic import MutationContext, OptimisticUpdateManager, Updater
from .pending_queue import PendingActionQueue
from .sync_coordinator import CompletionListener, StateListener, SyncCoordinator


detail_logger = get_detail_logger()
status_logger = get_status_logger()


def open_storage_driver(db_path: Path) -> StorageDriver:
    """Open the SQLite driver, falling back to memory when it is unavailable."""
    try:
        return SQLiteStorageDriver(db_path)
    except StorageError as e:
        detail_logger.exception(f"Cannot open storage at {db_path}: {e}")
        status_logger.warning(
            "Persistent storage unavailable; pending changes will not survive a restart"
        )
        return MemoryStorageDriver()


class OfflineSyncEngine:
    """One offline sync session.

    Example:
        >>> async with OfflineSyncEngine() as engine:
        ...     await engine.mutate("clients", "create", "clients", {"name": "A"})
        ...     await engine.sync_now()
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        driver: StorageDriver | None = None,
        executor: ActionExecutor | None = None,
        connectivity: ConnectivitySource | None = None,
        notifier: NotificationSink | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config_manager().load_config()

        if driver is None:
            driver = open_storage_driver(Path(self.config.storage.db_path))
        self.persistent_cache = PersistentCache(driver, clock)
        self.query_cache = QueryCache()
        self.queue = PendingActionQueue(self.persistent_cache)
        self.notifier = notifier or LoggingNotificationSink()

        self.executor = executor or HttpActionExecutor(
            base_url=self.config.api.base_url,
            headers=self.config.api.headers,
            request_retries=self.config.api.request_retries,
            timeout_seconds=self.config.api.timeout_seconds,
        )

        if connectivity is None:
            probe_url = self.config.connectivity.probe_url
            connectivity = (
                HttpProbeConnectivitySource(
                    probe_url, self.config.connectivity.probe_interval_seconds
                )
                if probe_url
                else ManualConnectivitySource()
            )
        self.connectivity = connectivity

        self.coordinator = SyncCoordinator(
            queue=self.queue,
            executor=self.executor,
            query_cache=self.query_cache,
            persistent_cache=self.persistent_cache,
            connectivity=self.connectivity,
            notifier=self.notifier,
            auto_sync_delay=self.config.sync.auto_sync_delay_seconds,
            pending_trigger=IntervalTrigger(
                self.config.sync.pending_refresh_interval_seconds
            ),
            snapshot_ttl_millis=self.config.storage.snapshot_ttl_hours * 3600 * 1000,
        )
        self.optimistic = OptimisticUpdateManager(
            query_cache=self.query_cache,
            executor=self.executor,
            queue=self.queue,
            notifier=self.notifier,
            retry_policy=self.coordinator.retry_policy,
            is_online=lambda: self.coordinator.state.is_online,
        )
        self._detach_optimistic: Callable[[], None] | None = None

    async def __aenter__(self) -> "OfflineSyncEngine":
        await self.start()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.stop()

    async def start(self) -> None:
        """Restore durable state and attach triggers."""
        restored = await self.queue.load()
        await self.query_cache.load(self.persistent_cache)
        if self._detach_optimistic is None:
            self._detach_optimistic = self.optimistic.attach(self.coordinator)
        await self.coordinator.start()
        if restored:
            status_logger.info(f"{restored} pending changes waiting to be synchronized")

    async def stop(self) -> None:
        """Detach triggers, persist the cache snapshot and close the HTTP session."""
        await self.coordinator.stop()
        if self._detach_optimistic is not None:
            self._detach_optimistic()
            self._detach_optimistic = None
        await self.query_cache.persist(
            self.persistent_cache, self.coordinator.snapshot_ttl_millis
        )
        if isinstance(self.executor, HttpActionExecutor):
            await self.executor.close()

    # ----- exposed operations ------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self.coordinator.state

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        return self.coordinator.subscribe_state(listener)

    def subscribe_completion(self, listener: CompletionListener) -> Callable[[], None]:
        return self.coordinator.subscribe_completion(listener)

    def pending_actions(self) -> list[PendingAction]:
        return self.queue.list()

    async def enqueue(
        self, action_type: ActionType | str, resource: str, payload: Any = None
    ) -> str:
        """Queue a mutation without touching the query cache."""
        action_id = await self.queue.enqueue(action_type, resource, payload)
        await self.coordinator.refresh_pending_count()
        return action_id

    async def sync_now(self) -> SyncResult:
        return await self.coordinator.sync_now()

    async def mutate(
        self,
        query_key: str,
        action_type: ActionType | str,
        resource: str,
        payload: Any = None,
        apply: Updater | None = None,
    ) -> MutationContext:
        """Apply a mutation optimistically and send or queue it."""
        ctx = await self.optimistic.mutate(
            query_key, action_type, resource, payload, apply
        )
        await self.coordinator.refresh_pending_count()
        return ctx

    async def save_offline_data(self, key: str, data: Any) -> None:
        """Keep read-only data available offline for the snapshot TTL."""
        await self.persistent_cache.set(
            f"{STORAGE_NAMESPACE}:offline:{key}",
            data,
            self.coordinator.snapshot_ttl_millis,
        )

    async def get_offline_data(self, key: str) -> Any:
        return await self.persistent_cache.get(f"{STORAGE_NAMESPACE}:offline:{key}")
