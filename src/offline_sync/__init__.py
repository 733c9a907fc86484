# SPDX-License-Identifier: MIT
"""Offline-first synchronization engine."""

from importlib.metadata import PackageNotFoundError, version

from .engine import OfflineSyncEngine
from .models import PendingAction, SyncResult, SyncState


__all__: list[str] = [
    "OfflineSyncEngine",
    "PendingAction",
    "SyncResult",
    "SyncState",
    "__version__",
]

# Get version from installed package metadata
__version__: str
try:
    __version__ = version("offline-sync")
except PackageNotFoundError:
    # Package is not installed, use development fallback
    __version__ = "development"
