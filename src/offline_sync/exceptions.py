# SPDX-License-Identifier: MIT
"""Standard exceptions for the offline sync engine."""


class SyncError(Exception):
    """Base class for all failures of a synchronized request."""

    def __init__(self, message: str, action_id: str | None = None) -> None:
        self.action_id = action_id
        super().__init__(message)


class NetworkError(SyncError):
    """Raised when no response reached the client (connection failure, timeout)."""

    pass


class ServerError(SyncError):
    """Raised when the server answered with a 5xx status."""

    def __init__(
        self,
        message: str = "Server error",
        status: int = 500,
        action_id: str | None = None,
    ) -> None:
        self.status = status
        super().__init__(f"{message} (HTTP {status})", action_id)


class ClientError(SyncError):
    """Raised when the server rejected the request with a 4xx status."""

    def __init__(
        self,
        message: str = "Request rejected",
        status: int = 400,
        action_id: str | None = None,
    ) -> None:
        self.status = status
        super().__init__(f"{message} (HTTP {status})", action_id)


class StorageError(Exception):
    """Raised by storage drivers when the persistence backend is unavailable."""

    pass


# Failures that consume one retry and leave the action queued
RETRYABLE_ERRORS: tuple[type[SyncError], ...] = (NetworkError, ServerError)
