# SPDX-License-Identifier: MIT
"""HTTP execution of pending actions against the REST backend."""

import asyncio
from typing import Any, Protocol, runtime_checkable

import aiohttp

from .enums import ActionType, OutcomeKind
from .exceptions import ClientError, NetworkError, ServerError, SyncError
from .logging_config import get_detail_logger
from .models import PendingAction, RequestOutcome
from .retry_utils import async_retry_with_backoff


detail_logger = get_detail_logger()


@runtime_checkable
class ActionExecutor(Protocol):
    """Runs an action's request and reports a classified outcome.

    Implementations must not raise for request failures; every failure is
    reported through `RequestOutcome.kind`.
    """

    async def execute(self, action: PendingAction) -> RequestOutcome: ...


_METHODS: dict[ActionType, str] = {
    ActionType.CREATE: "POST",
    ActionType.UPDATE: "PUT",
    ActionType.DELETE: "DELETE",
}


def build_request(base_url: str, action: PendingAction) -> tuple[str, str, Any]:
    """Describe the request for an action.

    Args:
        base_url: Backend base URL
        action: Action to describe

    Returns:
        Tuple of (method, url, json_body)

    Raises:
        ValueError: If an update or delete carries no target id
    """
    collection = f"{base_url.rstrip('/')}/{action.resource.strip('/')}"
    method = _METHODS[action.type]

    if action.type == ActionType.CREATE:
        return method, collection, action.payload

    item_id = action.item_id()
    if item_id is None or item_id == "":
        raise ValueError(
            f"{action.type.value} action {action.id} on '{action.resource}' has no target id"
        )
    body = action.payload if action.type == ActionType.UPDATE else None
    return method, f"{collection}/{item_id}", body


class HttpActionExecutor:
    """aiohttp client that executes pending actions."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        request_retries: int = 0,
        timeout_seconds: float | None = None,
    ):
        """Initialize the executor.

        Args:
            base_url: Backend base URL, e.g. ``https://example.org/api``
            headers: Extra headers sent with every request
            request_retries: In-request retries for network and 5xx failures
            timeout_seconds: Total request timeout; None keeps aiohttp's default
        """
        self.base_url = base_url
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.request_retries = request_retries
        self.timeout_seconds = timeout_seconds
        self.session: aiohttp.ClientSession | None = None

    def _new_session(self) -> aiohttp.ClientSession:
        if self.timeout_seconds is None:
            return aiohttp.ClientSession(headers=self.headers)
        return aiohttp.ClientSession(
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        )

    async def __aenter__(self) -> "HttpActionExecutor":
        """Async context manager entry."""
        self.session = self._new_session()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def _send(self, action: PendingAction) -> tuple[int, Any]:
        """Send one request; raises a `SyncError` subclass on failure."""
        method, url, body = build_request(self.base_url, action)

        if not self.session:
            self.session = self._new_session()

        detail_logger.debug(f"{method} {url} for action {action.id}")
        try:
            async with self.session.request(method, url, json=body) as response:
                if response.status >= 500:
                    raise ServerError(
                        f"{method} {url} failed", response.status, action.id
                    )
                if response.status >= 400:
                    raise ClientError(
                        f"{method} {url} rejected", response.status, action.id
                    )
                if response.status == 204:
                    return response.status, None
                try:
                    return response.status, await response.json(content_type=None)
                except ValueError:
                    return response.status, None
        except asyncio.TimeoutError as e:
            raise NetworkError(f"{method} {url} timed out", action.id) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{method} {url} failed: {e}", action.id) from e

    async def execute(self, action: PendingAction) -> RequestOutcome:
        """Execute an action and classify the result."""
        sender = self._send
        if self.request_retries > 0:
            sender = async_retry_with_backoff(max_retries=self.request_retries)(
                self._send
            )

        try:
            status, data = await sender(action)
        except ValueError as e:
            detail_logger.warning(f"Malformed action {action.id}: {e}")
            return RequestOutcome(kind=OutcomeKind.CLIENT_ERROR, error=str(e))
        except SyncError as e:
            detail_logger.debug(f"Action {action.id} failed: {e}")
            return RequestOutcome.from_error(e)

        detail_logger.debug(f"Action {action.id} confirmed by server")
        return RequestOutcome(kind=OutcomeKind.SUCCESS, status=status, data=data)
