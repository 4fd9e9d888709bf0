"""
Remote store synchronisation.

- remote_store: store contract, StoreError and the in-process MemoryStore
- normalise: scalar/record value normalisation
- remote_adapter: per-path subscriptions mirrored into a SensorState
- arbiter: LIVE/FALLBACK source selection
"""

from smartbin.sync.arbiter import FallbackArbiter, SourceMode
from smartbin.sync.remote_adapter import RemoteSyncAdapter
from smartbin.sync.remote_store import (
    SERVER_TIMESTAMP,
    MemoryStore,
    RemoteStore,
    StoreError,
)

__all__ = [
    "SERVER_TIMESTAMP",
    "FallbackArbiter",
    "MemoryStore",
    "RemoteStore",
    "RemoteSyncAdapter",
    "SourceMode",
    "StoreError",
]
