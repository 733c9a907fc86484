# SPDX-License-Identifier: MIT
"""Core data models for the offline sync engine."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .constants import MAX_RETRIES
from .enums import ActionType, OutcomeKind, SyncResultStatus
from .exceptions import ClientError, ServerError, SyncError


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class PendingAction(BaseModel):
    """A locally queued mutation not yet confirmed by the server."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: ActionType = Field(..., description="Mutation kind")
    resource: str = Field(..., min_length=1, description="Target collection")
    payload: Any = Field(None, description="JSON-serializable request body")
    enqueued_at: datetime = Field(default_factory=utc_now)
    retry_count: int = Field(0, ge=0, le=MAX_RETRIES)

    def item_id(self) -> Any:
        """Identity of the targeted item for update/delete actions."""
        if isinstance(self.payload, dict):
            return self.payload.get("id")
        return self.payload


class CacheEntry(BaseModel):
    """A value persisted with its storage time and time-to-live."""

    key: str
    value: Any = None
    stored_at: float = Field(..., description="Epoch seconds at write time")
    ttl_millis: int | None = Field(None, gt=0, description="None never expires")

    def is_expired(self, now: float) -> bool:
        """Check whether the entry's age exceeds its TTL at ``now``."""
        if self.ttl_millis is None:
            return False
        return (now - self.stored_at) * 1000 > self.ttl_millis


class SyncState(BaseModel):
    """Observable state of the sync coordinator."""

    is_online: bool = True
    is_syncing: bool = False
    last_sync_at: datetime | None = None
    pending_count: int = Field(0, ge=0)


class RequestOutcome(BaseModel):
    """Classified outcome of executing an action's request."""

    kind: OutcomeKind
    status: int | None = None
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @classmethod
    def from_error(cls, error: SyncError) -> "RequestOutcome":
        """Classify a raised request failure."""
        if isinstance(error, ClientError):
            return cls(
                kind=OutcomeKind.CLIENT_ERROR, status=error.status, error=str(error)
            )
        if isinstance(error, ServerError):
            return cls(
                kind=OutcomeKind.SERVER_ERROR, status=error.status, error=str(error)
            )
        return cls(kind=OutcomeKind.NETWORK_ERROR, error=str(error))


class SyncResult(BaseModel):
    """Summary of one sync pass."""

    status: SyncResultStatus = SyncResultStatus.SUCCESS
    reason: str | None = None
    succeeded: int = 0
    retrying: int = 0
    dropped_exhausted: int = 0
    dropped_terminal: int = 0
    completed_at: datetime | None = None

    @property
    def processed(self) -> int:
        return (
            self.succeeded
            + self.retrying
            + self.dropped_exhausted
            + self.dropped_terminal
        )
