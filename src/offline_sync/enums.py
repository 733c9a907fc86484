# SPDX-License-Identifier: MIT
"""Enums for the offline sync engine."""

from enum import Enum


class ActionType(str, Enum):
    """Kinds of mutation a pending action can carry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OutcomeKind(str, Enum):
    """Classified outcome of executing an action's HTTP request."""

    SUCCESS = "success"
    NETWORK_ERROR = "network_error"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


class FailureKind(str, Enum):
    """Failure taxonomy used for retry decisions."""

    NETWORK = "network"
    SERVER = "server"
    CLIENT = "client"


class RetryDecision(str, Enum):
    """What the coordinator does with an action after an attempt."""

    CONFIRMED = "confirmed"
    RETRY_LATER = "retry_later"
    DROP_EXHAUSTED = "drop_exhausted"
    DROP_TERMINAL = "drop_terminal"


class SyncStatus(str, Enum):
    """Coordinator states."""

    IDLE = "idle"
    SYNCING = "syncing"


class SyncResultStatus(str, Enum):
    """Status values for a sync pass."""

    SUCCESS = "success"
    SKIPPED = "skipped"


class MutationState(str, Enum):
    """Per-mutation lifecycle of an optimistic update."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    SETTLED = "settled"
