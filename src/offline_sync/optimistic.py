# SPDX-License-Identifier: MIT
"""Optimistic cache updates with exact rollback.

Every mutation goes through three phases:

1. ``on_mutate``: cancel in-flight fetches for the key, snapshot it, write the
   speculative value.
2. ``on_success`` or ``on_error``: swap the temporary entity for the server's
   one, or restore the snapshot.
3. ``on_settled``: invalidate the key, exactly once.
"""

import random
import string
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .cache.query_cache import Present, QueryCache, Snapshot
from .constants import TEMP_FLAG, TEMP_ID_PREFIX
from .enums import ActionType, MutationState, OutcomeKind, RetryDecision
from .exceptions import SyncError
from .http_executor import ActionExecutor
from .logging_config import get_detail_logger
from .models import PendingAction, RequestOutcome
from .notifications import LoggingNotificationSink, NotificationSink
from .pending_queue import PendingActionQueue
from .retry_policy import RetryPolicy
from .sync_coordinator import SyncCoordinator


detail_logger = get_detail_logger()

Updater = Callable[[Any, Any], Any]


def generate_temp_id(prefix: str = TEMP_ID_PREFIX) -> str:
    """Build a provisional id: prefix, millisecond timestamp and a random suffix."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def create_temporary_item(
    data: dict[str, Any], prefix: str = TEMP_ID_PREFIX
) -> dict[str, Any]:
    """Copy ``data`` into a provisional entity carrying a temporary id."""
    return {**data, "id": generate_temp_id(prefix), TEMP_FLAG: True}


def is_temporary(item: Any) -> bool:
    return isinstance(item, dict) and bool(item.get(TEMP_FLAG))


def replace_temporary_item(
    items: list[Any], temp_id: str, real_item: dict[str, Any], id_field: str = "id"
) -> list[Any]:
    """Swap the entity with ``temp_id`` for the server-confirmed one."""
    confirmed = {key: value for key, value in real_item.items() if key != TEMP_FLAG}
    return [
        confirmed if isinstance(item, dict) and item.get(id_field) == temp_id else item
        for item in items
    ]


def list_append(items: list[Any] | None, item: Any) -> list[Any]:
    return [*(items or []), item]


def list_update(
    items: list[Any] | None, changes: dict[str, Any], id_field: str = "id"
) -> list[Any]:
    """Merge ``changes`` into the item sharing its id."""
    return [
        {**item, **changes}
        if isinstance(item, dict) and item.get(id_field) == changes.get(id_field)
        else item
        for item in items or []
    ]


def list_remove(items: list[Any] | None, item_id: Any, id_field: str = "id") -> list[Any]:
    return [
        item
        for item in items or []
        if not (isinstance(item, dict) and item.get(id_field) == item_id)
    ]


def object_update(obj: dict[str, Any] | None, changes: dict[str, Any]) -> dict[str, Any]:
    return {**(obj or {}), **changes}


def _default_updater(action: PendingAction) -> Updater:
    """Collection updater matching the action type."""

    def create(current: Any, item: Any) -> Any:
        if current is not None and not isinstance(current, list):
            detail_logger.debug(
                f"Default create updater skips non-list value of type {type(current).__name__}"
            )
            return current
        return list_append(current, item)

    def update(current: Any, changes: Any) -> Any:
        if isinstance(current, dict):
            return object_update(current, changes)
        return list_update(current, changes)

    def delete(current: Any, _payload: Any) -> Any:
        if isinstance(current, list):
            return list_remove(current, action.item_id())
        return current

    return {
        ActionType.CREATE: create,
        ActionType.UPDATE: update,
        ActionType.DELETE: delete,
    }[action.type]


@dataclass
class MutationContext:
    """Rollback context and lifecycle of one optimistic mutation."""

    query_key: str
    action: PendingAction
    snapshot: Snapshot
    temp_id: str | None = None
    state: MutationState = MutationState.PENDING
    queued: bool = False
    result: Any = None
    error: str | None = None


class OptimisticUpdateManager:
    """Applies speculative cache writes and settles them.

    Mutations issued while offline, or that fail with a retryable error, are
    handed to the pending queue and stay pending until the coordinator
    reports their outcome.
    """

    def __init__(
        self,
        query_cache: QueryCache,
        executor: ActionExecutor | None = None,
        queue: PendingActionQueue | None = None,
        notifier: NotificationSink | None = None,
        retry_policy: RetryPolicy | None = None,
        is_online: Callable[[], bool] = lambda: True,
        temp_prefix: str = TEMP_ID_PREFIX,
    ):
        self.query_cache = query_cache
        self.executor = executor
        self.queue = queue
        self.notifier = notifier or LoggingNotificationSink()
        self.retry_policy = retry_policy or RetryPolicy()
        self.is_online = is_online
        self.temp_prefix = temp_prefix
        self._pending: dict[str, MutationContext] = {}

    def pending_mutations(self) -> list[MutationContext]:
        """Mutations waiting on the pending queue."""
        return list(self._pending.values())

    # ----- phase 1 -----------------------------------------------------------

    async def on_mutate(
        self,
        query_key: str,
        action_type: ActionType | str,
        resource: str,
        payload: Any = None,
        apply: Updater | None = None,
    ) -> MutationContext:
        """Write the speculative value and return the rollback context.

        Args:
            query_key: Cache key displaying the affected data
            action_type: Mutation kind
            resource: Target collection
            payload: Request body; for updates and deletes it carries the ``id``
            apply: ``(current, item) -> new`` override of the default list updater

        Returns:
            Context holding the pre-mutation snapshot
        """
        action = PendingAction(
            type=ActionType(action_type), resource=resource, payload=payload
        )

        await self.query_cache.cancel(query_key)
        snapshot = self.query_cache.snapshot(query_key)

        item = payload
        temp_id: str | None = None
        if action.type == ActionType.CREATE:
            fields = payload if isinstance(payload, dict) else {"value": payload}
            item = create_temporary_item(fields, self.temp_prefix)
            temp_id = item["id"]

        updater = apply or _default_updater(action)
        self.query_cache.update(query_key, lambda current: updater(current, item))

        detail_logger.debug(
            f"Optimistic {action.type.value} on '{query_key}' (action {action.id})"
        )
        return MutationContext(
            query_key=query_key, action=action, snapshot=snapshot, temp_id=temp_id
        )

    # ----- phase 2 -----------------------------------------------------------

    def _require_pending(self, ctx: MutationContext) -> None:
        if ctx.state != MutationState.PENDING:
            raise RuntimeError(
                f"Mutation {ctx.action.id} already {ctx.state.value}, cannot resolve again"
            )

    def on_success(self, ctx: MutationContext, data: Any) -> None:
        """Confirm the mutation; provisional entities take the server identity."""
        self._require_pending(ctx)
        ctx.result = data

        current = self.query_cache.get(ctx.query_key)
        if ctx.temp_id and isinstance(data, dict) and isinstance(current, list):
            self.query_cache.set(
                ctx.query_key, replace_temporary_item(current, ctx.temp_id, data)
            )
            detail_logger.debug(f"Replaced {ctx.temp_id} with id {data.get('id')!r}")

        ctx.state = MutationState.CONFIRMED

    def on_error(
        self, ctx: MutationContext, error: Exception | str, notify: bool = True
    ) -> None:
        """Roll the cache back and tell the user the change was undone."""
        self._require_pending(ctx)
        ctx.error = str(error)

        current = self.query_cache.get(ctx.query_key)
        if (
            ctx.temp_id
            and isinstance(ctx.snapshot, Present)
            and isinstance(ctx.snapshot.value, list)
            and isinstance(current, list)
        ):
            # Entries added to the collection since the snapshot are kept
            self.query_cache.set(ctx.query_key, list_remove(current, ctx.temp_id))
        else:
            self.query_cache.restore(ctx.query_key, ctx.snapshot)

        ctx.state = MutationState.ROLLED_BACK
        detail_logger.info(f"Rolled back mutation {ctx.action.id}: {error}")
        if notify:
            self.notifier.notify_error(
                "Your change could not be saved and has been undone", ctx.action
            )

    # ----- phase 3 -----------------------------------------------------------

    def on_settled(self, ctx: MutationContext) -> None:
        """Invalidate the affected key whatever the outcome."""
        if ctx.state == MutationState.SETTLED:
            raise RuntimeError(f"Mutation {ctx.action.id} already settled")
        if ctx.state == MutationState.PENDING:
            raise RuntimeError(f"Mutation {ctx.action.id} is still pending")

        self.query_cache.invalidate(ctx.query_key)
        ctx.state = MutationState.SETTLED
        self._pending.pop(ctx.action.id, None)

    # ----- full protocol -----------------------------------------------------

    async def _hand_to_queue(self, ctx: MutationContext, action: PendingAction) -> None:
        if self.queue is None:
            raise RuntimeError("No pending queue configured for offline mutations")
        await self.queue.push(action)
        ctx.queued = True
        self._pending[action.id] = ctx

    async def mutate(
        self,
        query_key: str,
        action_type: ActionType | str,
        resource: str,
        payload: Any = None,
        apply: Updater | None = None,
    ) -> MutationContext:
        """Run a mutation through all three phases.

        Offline, the action is queued and the context stays pending until the
        coordinator reports it. Online, the request runs immediately; a
        retryable failure queues it instead of rolling back.
        """
        ctx = await self.on_mutate(query_key, action_type, resource, payload, apply)

        if not self.is_online() or self.executor is None:
            await self._hand_to_queue(ctx, ctx.action)
            return ctx

        try:
            outcome = await self.executor.execute(ctx.action)
        except SyncError as e:
            outcome = RequestOutcome.from_error(e)
        except Exception as e:
            detail_logger.exception(
                f"Executor raised unexpectedly for action {ctx.action.id}: {e}"
            )
            outcome = RequestOutcome(kind=OutcomeKind.NETWORK_ERROR, error=str(e))

        if outcome.ok:
            self.on_success(ctx, outcome.data)
        elif self.retry_policy.is_retryable(outcome) and self.queue is not None:
            # The attempt just made consumes one retry
            retried = ctx.action.model_copy(update={"retry_count": 1})
            await self._hand_to_queue(ctx, retried)
            return ctx
        else:
            self.on_error(ctx, outcome.error or outcome.kind.value)

        self.on_settled(ctx)
        return ctx

    # ----- coordinator integration -------------------------------------------

    def attach(self, coordinator: SyncCoordinator) -> Callable[[], None]:
        """Settle queued mutations from the coordinator's per-action results."""
        return coordinator.subscribe_actions(self._on_action_result)

    def _on_action_result(
        self,
        action: PendingAction,
        decision: RetryDecision,
        outcome: RequestOutcome | None,
    ) -> None:
        ctx = self._pending.get(action.id)
        if ctx is None or decision == RetryDecision.RETRY_LATER:
            return

        if decision == RetryDecision.CONFIRMED:
            self.on_success(ctx, outcome.data if outcome else None)
        elif decision == RetryDecision.DROP_TERMINAL:
            # The coordinator already notified the user
            self.on_error(ctx, outcome.error if outcome else "rejected", notify=False)
        else:
            self.on_error(ctx, "retry budget exhausted")
        self.on_settled(ctx)
