"""Client-replica synchronization against a single remote JSON document."""

from __future__ import annotations

from albumsync.sync.client import (
    PayloadTooLargeError,
    RemoteConnectionError,
    RemoteResponseError,
    RemoteStoreClient,
    RemoteStoreError,
)
from albumsync.sync.guard import SyncSession
from albumsync.sync.replica import LocalReplica
from albumsync.sync.scheduler import PullOutcome, PushResult, SyncScheduler, SyncStatus

__all__ = [
    "LocalReplica",
    "PayloadTooLargeError",
    "PullOutcome",
    "PushResult",
    "RemoteConnectionError",
    "RemoteResponseError",
    "RemoteStoreClient",
    "RemoteStoreError",
    "SyncScheduler",
    "SyncSession",
    "SyncStatus",
]
