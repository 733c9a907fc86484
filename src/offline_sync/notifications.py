# SPDX-License-Identifier: MIT
"""Sinks for user-visible notifications of terminal failures."""

from typing import Protocol, runtime_checkable

from .logging_config import get_status_logger
from .models import PendingAction


status_logger = get_status_logger()


@runtime_checkable
class NotificationSink(Protocol):
    """Receives user-facing error messages."""

    def notify_error(self, message: str, action: PendingAction | None = None) -> None: ...


class LoggingNotificationSink:
    """Reports terminal failures through the status logger."""

    def notify_error(self, message: str, action: PendingAction | None = None) -> None:
        if action is not None:
            status_logger.error(f"{message} [{action.type.value} {action.resource}]")
        else:
            status_logger.error(message)


class CollectingNotificationSink:
    """Keeps notifications in memory for a UI layer to drain."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, PendingAction | None]] = []

    def notify_error(self, message: str, action: PendingAction | None = None) -> None:
        self.messages.append((message, action))

    def drain(self) -> list[tuple[str, PendingAction | None]]:
        messages, self.messages = self.messages, []
        return messages
