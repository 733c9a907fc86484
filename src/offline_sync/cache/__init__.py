# SPDX-License-Identifier: MIT
"""Cache layer of the offline sync engine.

- StorageDriver: opaque async string store (SQLite or memory)
- PersistentCache: TTL-validating adapter that never raises
- QueryCache: in-memory query results with fetch cancellation and invalidation
"""

from .drivers import MemoryStorageDriver, SQLiteStorageDriver, StorageDriver
from .persistent_cache import PersistentCache
from .query_cache import Absent, Present, QueryCache, Snapshot


__all__ = [
    "Absent",
    "MemoryStorageDriver",
    "PersistentCache",
    "Present",
    "QueryCache",
    "SQLiteStorageDriver",
    "Snapshot",
    "StorageDriver",
]
