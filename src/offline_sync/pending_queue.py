# SPDX-License-Identifier: MIT
"""Durable FIFO queue of mutations awaiting server confirmation."""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import ValidationError

from .cache.persistent_cache import PersistentCache
from .constants import MAX_RETRIES, PENDING_ACTIONS_KEY
from .enums import ActionType
from .logging_config import get_detail_logger
from .models import PendingAction


detail_logger = get_detail_logger()


class PendingActionQueue:
    """Ordered list of pending actions persisted as one JSON array.

    Every mutating operation builds the new list, persists it in full and
    only then swaps it in, so a crash never leaves a half-applied change.
    Loads and mutations are serialized by a lock, so a reload never races
    with a write made through this instance.
    """

    def __init__(self, cache: PersistentCache, storage_key: str = PENDING_ACTIONS_KEY):
        self._cache = cache
        self._storage_key = storage_key
        self._actions: list[PendingAction] = []
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        """Restore the queue from durable storage.

        Records that no longer validate are skipped with a warning.

        Returns:
            Number of actions restored
        """
        async with self._lock:
            return await self._load()

    async def _load(self) -> int:
        stored = await self._cache.get(self._storage_key)
        if not isinstance(stored, list):
            self._actions = []
            return 0

        actions: list[PendingAction] = []
        for record in stored:
            try:
                actions.append(PendingAction.model_validate(record))
            except ValidationError as e:
                detail_logger.warning(f"Skipping invalid pending action {record!r}: {e}")

        self._actions = self._ordered(actions)
        detail_logger.debug(f"Loaded {len(self._actions)} pending actions")
        return len(self._actions)

    @staticmethod
    def _ordered(actions: list[PendingAction]) -> list[PendingAction]:
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(actions, key=lambda action: action.enqueued_at)

    async def _commit(self, actions: list[PendingAction]) -> None:
        await self._cache.set(
            self._storage_key, [action.model_dump(mode="json") for action in actions]
        )
        self._actions = actions

    async def enqueue(
        self, action_type: ActionType | str, resource: str, payload: Any = None
    ) -> str:
        """Append a new action and persist the queue.

        Args:
            action_type: Mutation kind
            resource: Target collection
            payload: JSON-serializable request body

        Returns:
            The new action's id
        """
        action = PendingAction(
            type=ActionType(action_type), resource=resource, payload=payload
        )
        return await self.push(action)

    async def push(self, action: PendingAction) -> str:
        """Append an already built action and persist the queue."""
        async with self._lock:
            await self._commit(self._ordered([*self._actions, action]))
        detail_logger.info(
            f"Action {action.type.value} {action.resource} enqueued: {action.id}"
        )
        return action.id

    def list(self) -> list[PendingAction]:
        """Ordered snapshot of the queue; callers get copies."""
        return [action.model_copy(deep=True) for action in self._actions]

    def get(self, action_id: str) -> PendingAction | None:
        for action in self._actions:
            if action.id == action_id:
                return action.model_copy(deep=True)
        return None

    def count(self) -> int:
        return len(self._actions)

    async def remove(self, action_id: str) -> bool:
        """Remove an action.

        Returns:
            True if the action was queued
        """
        async with self._lock:
            remaining = [a for a in self._actions if a.id != action_id]
            if len(remaining) == len(self._actions):
                detail_logger.debug(f"Action {action_id} not in queue, nothing to remove")
                return False
            await self._commit(remaining)
        detail_logger.debug(f"Action {action_id} removed from queue")
        return True

    async def increment_retry(self, action_id: str) -> int | None:
        """Record one failed attempt for an action.

        Returns:
            The new retry count, or None if the action is not queued
        """
        async with self._lock:
            updated: list[PendingAction] = []
            new_count: int | None = None
            for action in self._actions:
                if action.id == action_id:
                    new_count = min(action.retry_count + 1, MAX_RETRIES)
                    action = action.model_copy(update={"retry_count": new_count})
                updated.append(action)

            if new_count is None:
                detail_logger.debug(f"Action {action_id} not in queue, no retry recorded")
                return None

            await self._commit(updated)
        detail_logger.debug(
            f"Action {action_id} retry count now {new_count}/{MAX_RETRIES}"
        )
        return new_count

    async def clear(self) -> int:
        """Drop every pending action.

        Returns:
            Number of actions dropped
        """
        async with self._lock:
            dropped = len(self._actions)
            await self._commit([])
        return dropped
