# SPDX-License-Identifier: MIT
"""Constants used throughout the offline sync engine.

This module centralizes:

- **Retry budget**: the fixed per-action retry limit and HTTP backoff bounds
- **Timing**: the auto-sync delay after reconnecting and the pending-count refresh period
- **Storage keys**: the namespaced keys of the durable queue and cache snapshot
- **TTL defaults**: lifetime of the persisted query cache snapshot
"""

# Retry budget per pending action, independent of the number of sync passes
MAX_RETRIES: int = 3

# In-request backoff: min(BASE * 2**attempt, MAX) milliseconds
BACKOFF_BASE_MILLIS: int = 1000
BACKOFF_MAX_MILLIS: int = 30000

# Trigger timing
AUTO_SYNC_DELAY_SECONDS: float = 1.5
PENDING_REFRESH_INTERVAL_SECONDS: float = 30.0
CONNECTIVITY_PROBE_INTERVAL_SECONDS: float = 10.0

# Durable storage keys
STORAGE_NAMESPACE: str = "offline_sync"
PENDING_ACTIONS_KEY: str = f"{STORAGE_NAMESPACE}:pending_actions"
QUERY_CACHE_SNAPSHOT_KEY: str = f"{STORAGE_NAMESPACE}:query_cache"

# Persisted cache snapshot lifetime
SNAPSHOT_TTL_HOURS: int = 24
SNAPSHOT_TTL_MILLIS: int = SNAPSHOT_TTL_HOURS * 60 * 60 * 1000

# Optimistic creations
TEMP_ID_PREFIX: str = "temp"
TEMP_FLAG: str = "_temp"

# Cache key limits
MAX_CACHE_KEY_LENGTH: int = 255

DEFAULT_DB_FILENAME: str = "offline-sync.db"
