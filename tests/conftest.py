# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import Callable

import pytest

from offline_sync.cache import MemoryStorageDriver, PersistentCache, QueryCache
from offline_sync.config import reset_config_manager
from offline_sync.connectivity import ManualConnectivitySource
from offline_sync.enums import OutcomeKind
from offline_sync.models import PendingAction, RequestOutcome
from offline_sync.notifications import CollectingNotificationSink
from offline_sync.pending_queue import PendingActionQueue
from offline_sync.sync_coordinator import SyncCoordinator


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExecutor:
    """Scripted ActionExecutor recording every call.

    ``responder`` maps an action to its outcome; the default echoes the
    payload back as a successful response. When ``gate`` is set, every call
    waits on it, which keeps a sync pass in flight.
    """

    def __init__(
        self,
        responder: Callable[[PendingAction], RequestOutcome] | None = None,
    ):
        self.calls: list[PendingAction] = []
        self.responder = responder or (
            lambda action: RequestOutcome(
                kind=OutcomeKind.SUCCESS, status=200, data=action.payload
            )
        )
        self.gate: asyncio.Event | None = None

    async def execute(self, action: PendingAction) -> RequestOutcome:
        self.calls.append(action)
        if self.gate is not None:
            await self.gate.wait()
        return self.responder(action)


class NoopTrigger:
    """Interval trigger that never fires on its own."""

    def __init__(self) -> None:
        self.listeners: list = []

    def subscribe(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)


def outcome(kind: OutcomeKind, status: int | None = None, data=None) -> RequestOutcome:
    return RequestOutcome(kind=kind, status=status, data=data, error=kind.value)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test away from the user's config and database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OFFLINE_SYNC_DB_PATH", str(tmp_path / "offline-sync.db"))
    reset_config_manager()
    yield
    reset_config_manager()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def driver():
    return MemoryStorageDriver()


@pytest.fixture
def persistent_cache(driver, clock):
    return PersistentCache(driver, clock)


@pytest.fixture
def queue(persistent_cache):
    return PendingActionQueue(persistent_cache)


@pytest.fixture
def query_cache():
    return QueryCache()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def connectivity():
    return ManualConnectivitySource(online=True)


@pytest.fixture
def notifier():
    return CollectingNotificationSink()


@pytest.fixture
def trigger():
    return NoopTrigger()


@pytest.fixture
def coordinator(queue, executor, query_cache, persistent_cache, connectivity, notifier, trigger):
    return SyncCoordinator(
        queue=queue,
        executor=executor,
        query_cache=query_cache,
        persistent_cache=persistent_cache,
        connectivity=connectivity,
        notifier=notifier,
        auto_sync_delay=0.01,
        pending_trigger=trigger,
    )
