# SPDX-License-Identifier: MIT
"""Sync coordinator: drains the pending action queue when connectivity allows."""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

from .cache.persistent_cache import PersistentCache
from .cache.query_cache import QueryCache
from .connectivity import ConnectivitySource, IntervalTrigger, TriggerSource
from .constants import (
    AUTO_SYNC_DELAY_SECONDS,
    PENDING_REFRESH_INTERVAL_SECONDS,
    SNAPSHOT_TTL_MILLIS,
)
from .enums import OutcomeKind, RetryDecision, SyncResultStatus, SyncStatus
from .exceptions import SyncError
from .http_executor import ActionExecutor
from .logging_config import get_detail_logger, get_status_logger
from .models import PendingAction, RequestOutcome, SyncResult, SyncState, utc_now
from .notifications import LoggingNotificationSink, NotificationSink
from .pending_queue import PendingActionQueue
from .retry_policy import RetryPolicy


StateListener = Callable[[SyncState], None]
CompletionListener = Callable[[SyncResult], None]
ActionListener = Callable[[PendingAction, RetryDecision, RequestOutcome | None], None]


class SyncCoordinator:
    """Two-state machine (idle/syncing) that owns sync passes.

    One coordinator is built per application session. `start` attaches the
    connectivity and interval subscriptions, `stop` detaches them. Sync passes
    are mutually exclusive: a trigger that arrives while a pass is running is
    a no-op.
    """

    def __init__(
        self,
        queue: PendingActionQueue,
        executor: ActionExecutor,
        query_cache: QueryCache,
        persistent_cache: PersistentCache | None = None,
        connectivity: ConnectivitySource | None = None,
        retry_policy: RetryPolicy | None = None,
        notifier: NotificationSink | None = None,
        auto_sync_delay: float = AUTO_SYNC_DELAY_SECONDS,
        pending_trigger: TriggerSource | None = None,
        clock: Callable[[], datetime] = utc_now,
        snapshot_ttl_millis: int = SNAPSHOT_TTL_MILLIS,
    ):
        """Initialize the coordinator.

        Args:
            queue: Durable queue to drain
            executor: Runs each action's request
            query_cache: Invalidated coarsely after every pass
            persistent_cache: Receives the query cache snapshot after every pass
            connectivity: Source of online/offline transitions; None means always online
            retry_policy: Failure classification, defaults to `RetryPolicy()`
            notifier: Sink for terminal failures
            auto_sync_delay: Seconds between coming back online and the automatic pass
            pending_trigger: Periodic trigger for pending count refreshes
            clock: Returns the current time for `last_sync_at`
            snapshot_ttl_millis: TTL of the persisted query cache snapshot
        """
        self.queue = queue
        self.executor = executor
        self.query_cache = query_cache
        self.persistent_cache = persistent_cache
        self.connectivity = connectivity
        self.retry_policy = retry_policy or RetryPolicy()
        self.notifier = notifier or LoggingNotificationSink()
        self.auto_sync_delay = auto_sync_delay
        self.pending_trigger = pending_trigger or IntervalTrigger(
            PENDING_REFRESH_INTERVAL_SECONDS
        )
        self._clock = clock
        self.snapshot_ttl_millis = snapshot_ttl_millis

        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()

        self._state = SyncState(
            is_online=connectivity.is_online() if connectivity else True,
            pending_count=queue.count(),
        )
        self.last_result: SyncResult | None = None
        self._state_listeners: list[StateListener] = []
        self._completion_listeners: list[CompletionListener] = []
        self._action_listeners: list[ActionListener] = []
        self._unsubscribers: list[Callable[[], None]] = []
        self._auto_sync_task: asyncio.Task[Any] | None = None
        self._started = False

    # ----- observable state -------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state.model_copy()

    @property
    def status(self) -> SyncStatus:
        return SyncStatus.SYNCING if self._state.is_syncing else SyncStatus.IDLE

    def _set_state(self, **changes: Any) -> None:
        changed = {
            key: value
            for key, value in changes.items()
            if getattr(self._state, key) != value
        }
        if not changed:
            return
        self._state = self._state.model_copy(update=changed)
        self._notify(self._state_listeners, self.state)

    def _notify(self, listeners: list[Any], *args: Any) -> None:
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception as e:
                self.detail_logger.exception(f"Sync listener failed: {e}")

    @staticmethod
    def _subscribe(listeners: list[Any], listener: Any) -> Callable[[], None]:
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        """Listen to `SyncState` changes (online, syncing, pending count, last sync)."""
        return self._subscribe(self._state_listeners, listener)

    def subscribe_completion(self, listener: CompletionListener) -> Callable[[], None]:
        """Listen to the end of every sync pass that actually ran."""
        return self._subscribe(self._completion_listeners, listener)

    def subscribe_actions(self, listener: ActionListener) -> Callable[[], None]:
        """Listen to the per-action result of each attempt in a pass."""
        return self._subscribe(self._action_listeners, listener)

    # ----- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Attach connectivity and interval subscriptions."""
        if self._started:
            return
        self._started = True

        if self.connectivity is not None:
            self._set_state(is_online=self.connectivity.is_online())
            self._unsubscribers.append(
                self.connectivity.subscribe(self._on_connectivity_change)
            )
        self._unsubscribers.append(
            self.pending_trigger.subscribe(self._on_pending_tick)
        )
        await self.refresh_pending_count()
        self.detail_logger.info(
            f"Sync coordinator started (online={self._state.is_online}, "
            f"pending={self._state.pending_count})"
        )

    async def stop(self) -> None:
        """Detach subscriptions and cancel a scheduled automatic pass."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self._cancel_auto_sync()
        self._started = False
        self.detail_logger.info("Sync coordinator stopped")

    async def _cancel_auto_sync(self) -> None:
        task, self._auto_sync_task = self._auto_sync_task, None
        if task is None or task.done():
            return
        if not self._state.is_syncing:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    # ----- triggers ----------------------------------------------------------

    def set_online(self, online: bool) -> None:
        """Record a connectivity transition pushed by the host."""
        self._on_connectivity_change(online)

    def _on_connectivity_change(self, online: bool) -> None:
        was_online = self._state.is_online
        self._set_state(is_online=online)

        if online and not was_online:
            self.detail_logger.debug(
                f"Back online, scheduling sync in {self.auto_sync_delay}s"
            )
            if self._auto_sync_task is None or self._auto_sync_task.done():
                self._auto_sync_task = asyncio.get_running_loop().create_task(
                    self._auto_sync()
                )
        elif (
            not online
            and self._auto_sync_task is not None
            and not self._state.is_syncing
        ):
            # Only the pending delay is cancelled; a running pass finishes
            self._auto_sync_task.cancel()
            self._auto_sync_task = None

    async def _auto_sync(self) -> None:
        await asyncio.sleep(self.auto_sync_delay)
        await self.sync_now()

    async def refresh_pending_count(self) -> int:
        """Recompute `pending_count` from the queue."""
        count = self.queue.count()
        self._set_state(pending_count=count)
        return count

    async def _on_pending_tick(self) -> None:
        # Other processes or queue instances may have written to storage
        if not self._state.is_syncing:
            await self.queue.load()
        await self.refresh_pending_count()

    # ----- sync pass ---------------------------------------------------------

    async def sync_now(self) -> SyncResult:
        """Run one sync pass unless one is running or the client is offline.

        Returns:
            Summary of the pass, or a skipped result with the reason
        """
        if self._state.is_syncing:
            self.detail_logger.info("Sync already in progress, skipping")
            return SyncResult(
                status=SyncResultStatus.SKIPPED, reason="sync_in_progress"
            )
        if not self._state.is_online:
            self.detail_logger.info("Offline, skipping sync")
            return SyncResult(status=SyncResultStatus.SKIPPED, reason="offline")

        self._set_state(is_syncing=True)
        try:
            result = await self._drain()
            await self.refresh_pending_count()
            result.completed_at = self._clock()
            self._set_state(last_sync_at=result.completed_at)
            self.query_cache.invalidate()
            if self.persistent_cache is not None:
                await self.query_cache.persist(
                    self.persistent_cache, self.snapshot_ttl_millis
                )
        finally:
            self._set_state(is_syncing=False)

        self.last_result = result
        self._notify(self._completion_listeners, result)
        return result

    async def _attempt(self, action: PendingAction) -> RequestOutcome:
        try:
            return await self.executor.execute(action)
        except SyncError as e:
            return RequestOutcome.from_error(e)
        except Exception as e:
            self.detail_logger.exception(
                f"Executor raised unexpectedly for action {action.id}: {e}"
            )
            return RequestOutcome(kind=OutcomeKind.NETWORK_ERROR, error=str(e))

    async def _drain(self) -> SyncResult:
        """Process a snapshot of the queue strictly in FIFO order."""
        result = SyncResult()
        actions = self.queue.list()
        if not actions:
            return result

        self.status_logger.info(f"Synchronizing {len(actions)} pending actions...")

        for action in actions:
            if self.retry_policy.is_exhausted(action.retry_count):
                await self.queue.remove(action.id)
                self.status_logger.warning(
                    f"Action {action.id} exceeded max retries, discarding"
                )
                result.dropped_exhausted += 1
                self._notify(
                    self._action_listeners, action, RetryDecision.DROP_EXHAUSTED, None
                )
                continue

            outcome = await self._attempt(action)
            decision = self.retry_policy.decide(action, outcome)

            if decision == RetryDecision.CONFIRMED:
                await self.queue.remove(action.id)
                self.detail_logger.info(f"Action {action.id} synced")
                result.succeeded += 1
            elif decision == RetryDecision.DROP_TERMINAL:
                await self.queue.remove(action.id)
                self.status_logger.warning(
                    f"Action {action.id} rejected by server, discarding: {outcome.error}"
                )
                self.notifier.notify_error(
                    f"Your change to '{action.resource}' was rejected by the server "
                    f"and has been discarded",
                    action,
                )
                result.dropped_terminal += 1
            else:
                new_count = await self.queue.increment_retry(action.id)
                if new_count is not None and self.retry_policy.is_exhausted(new_count):
                    await self.queue.remove(action.id)
                    self.status_logger.warning(
                        f"Action {action.id} failed {new_count} times, discarding: "
                        f"{outcome.error}"
                    )
                    decision = RetryDecision.DROP_EXHAUSTED
                    result.dropped_exhausted += 1
                else:
                    self.detail_logger.info(
                        f"Action {action.id} failed (attempt {new_count}/"
                        f"{self.retry_policy.max_retries}): {outcome.error}"
                    )
                    decision = RetryDecision.RETRY_LATER
                    result.retrying += 1

            self._notify(self._action_listeners, action, decision, outcome)

        self.status_logger.info(
            f"Sync done: {result.succeeded} synced, {result.retrying} to retry, "
            f"{result.dropped_exhausted + result.dropped_terminal} discarded"
        )
        return result
