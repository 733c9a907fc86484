# SPDX-License-Identifier: MIT
"""Subscription interfaces for connectivity and periodic triggers.

Hosts without platform online/offline events use the HTTP probe; hosts that
have them push signals into a `ManualConnectivitySource`. Either way the
coordinator only subscribes and unsubscribes, so nothing leaks after stop.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

import aiohttp

from .constants import CONNECTIVITY_PROBE_INTERVAL_SECONDS
from .logging_config import get_detail_logger


detail_logger = get_detail_logger()

ConnectivityListener = Callable[[bool], None]
TickListener = Callable[[], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class ConnectivitySource(Protocol):
    """Reports whether the backend is reachable and notifies on change."""

    def is_online(self) -> bool: ...

    def subscribe(self, listener: ConnectivityListener) -> Unsubscribe: ...


@runtime_checkable
class TriggerSource(Protocol):
    """Fires listeners periodically while at least one is subscribed."""

    def subscribe(self, listener: TickListener) -> Unsubscribe: ...


class _ListenerSet:
    def __init__(self) -> None:
        self.listeners: list[ConnectivityListener] = []

    def add(self, listener: ConnectivityListener) -> None:
        self.listeners.append(listener)

    def discard(self, listener: ConnectivityListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def notify(self, online: bool) -> None:
        for listener in list(self.listeners):
            try:
                listener(online)
            except Exception as e:
                detail_logger.exception(f"Connectivity listener failed: {e}")


class ManualConnectivitySource:
    """Connectivity state driven by the host's own online/offline signals."""

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners = _ListenerSet()

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Record a platform signal; listeners only hear actual transitions."""
        if online == self._online:
            return
        self._online = online
        detail_logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        self._listeners.notify(online)

    def subscribe(self, listener: ConnectivityListener) -> Unsubscribe:
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)


class HttpProbeConnectivitySource:
    """Connectivity derived from polling a health URL.

    Polling runs only while someone is subscribed. Any HTTP answer below 500
    counts as online; connection errors, timeouts and 5xx count as offline.
    """

    def __init__(
        self,
        probe_url: str,
        interval_seconds: float = CONNECTIVITY_PROBE_INTERVAL_SECONDS,
        timeout_seconds: float = 5.0,
        online: bool = True,
    ):
        self.probe_url = probe_url
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._online = online
        self._listeners = _ListenerSet()
        self._task: asyncio.Task[None] | None = None

    def is_online(self) -> bool:
        return self._online

    async def probe(self) -> bool:
        """Run one probe and record the result."""
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            ) as session:
                async with session.head(self.probe_url) as response:
                    online = response.status < 500
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            detail_logger.debug(f"Connectivity probe to {self.probe_url} failed: {e}")
            online = False

        if online != self._online:
            self._online = online
            detail_logger.info(
                f"Connectivity changed: {'online' if online else 'offline'}"
            )
            self._listeners.notify(online)
        return online

    async def _poll(self) -> None:
        while True:
            await self.probe()
            await asyncio.sleep(self.interval_seconds)

    def subscribe(self, listener: ConnectivityListener) -> Unsubscribe:
        self._listeners.add(listener)
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._poll())

        def unsubscribe() -> None:
            self._listeners.discard(listener)
            if not self._listeners.listeners and self._task is not None:
                self._task.cancel()
                self._task = None

        return unsubscribe


class IntervalTrigger:
    """Calls listeners every ``interval_seconds`` while subscribed."""

    def __init__(self, interval_seconds: float):
        self.interval_seconds = interval_seconds
        self._listeners: list[TickListener] = []
        self._task: asyncio.Task[None] | None = None

    async def _tick(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                detail_logger.exception(f"Interval listener failed: {e}")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self._tick()

    def subscribe(self, listener: TickListener) -> Unsubscribe:
        self._listeners.append(listener)
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
            if not self._listeners and self._task is not None:
                self._task.cancel()
                self._task = None

        return unsubscribe
