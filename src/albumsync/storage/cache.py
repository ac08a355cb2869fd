"""On-disk mirror of the local replica for instant cold-start rendering.

The cache is a convenience, never a source of truth: whatever it holds is
shown until the first forced pull replaces it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from albumsync.core.models import (
    Snapshot,
    serialize_snapshot,
    snapshot_from_wire,
)
from albumsync.storage.fs import atomic_write
from albumsync.storage.locks import file_lock

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Load and persist one snapshot as a JSON file."""

    def __init__(self, path: Path, *, lock_timeout: float = 10) -> None:
        self.path = path
        self.lock_timeout = lock_timeout

    def load(self) -> Snapshot | None:
        """Return the cached snapshot, or ``None`` if missing or unreadable.

        Bad bytes or JSON, or fields of the wrong type, count as unreadable.
        """
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return snapshot_from_wire(data)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable snapshot cache %s: %s", self.path, exc)
            return None

    def save(self, snapshot: Snapshot) -> None:
        """Atomically replace the cache file with *snapshot*."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with file_lock(self.path, timeout=self.lock_timeout):
            atomic_write(self.path, serialize_snapshot(snapshot) + "\n")
        logger.debug("Cached %d albums to %s", len(snapshot), self.path)
