"""The client's local copy of the shared collection.

The replica always holds a complete snapshot.  It changes in exactly two
ways: :meth:`LocalReplica.apply` (a local, optimistic mutation) and
:meth:`LocalReplica.replace` (a pulled snapshot, wholesale, no merge).

Listeners are fire-and-forget: failures are logged but never interrupt the
write path.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable

from albumsync.core.models import Snapshot
from albumsync.storage.cache import SnapshotCache
from albumsync.storage.locks import LockTimeout

logger = logging.getLogger(__name__)

Listener = Callable[[Snapshot, str], None]


class LocalReplica:
    """In-memory snapshot with change notification and optional disk mirror."""

    def __init__(self, initial: Snapshot | None = None, *, cache: SnapshotCache | None = None) -> None:
        self._snapshot: Snapshot = copy.deepcopy(initial) if initial is not None else []
        self._cache = cache
        self._listeners: list[Listener] = []

    @classmethod
    def from_cache(cls, cache: SnapshotCache) -> LocalReplica:
        """Seed a replica from the on-disk cache for immediate rendering."""
        cached = cache.load()
        if cached is not None:
            logger.info("Loaded %d albums from cache", len(cached))
        return cls(cached, cache=cache)

    @property
    def snapshot(self) -> Snapshot:
        """A deep copy of the current snapshot."""
        return copy.deepcopy(self._snapshot)

    def __len__(self) -> int:
        return len(self._snapshot)

    def apply(self, fn: Callable[[Snapshot], Snapshot]) -> Snapshot:
        """Run *fn* on the current snapshot and adopt the result immediately.

        *fn* receives a private copy, so a transformation that mutates its
        argument cannot corrupt the replica if it raises halfway.
        Returns a copy of the new snapshot.
        """
        result = fn(copy.deepcopy(self._snapshot))
        if not isinstance(result, list):
            raise TypeError(
                f"Mutation must return a snapshot list, got {type(result).__name__}"
            )
        self._snapshot = result
        self._changed("local")
        return copy.deepcopy(result)

    def replace(self, snapshot: Snapshot) -> None:
        """Discard the current state in favour of *snapshot*."""
        self._snapshot = copy.deepcopy(snapshot)
        self._changed("remote")

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, fn: Listener) -> None:
        """Register ``fn(snapshot, origin)``; origin is ``"local"`` or ``"remote"``."""
        self._listeners.append(fn)

    def remove_listener(self, fn: Listener) -> None:
        try:
            self._listeners.remove(fn)
        except ValueError:
            pass

    def _changed(self, origin: str) -> None:
        if self._cache is not None:
            try:
                self._cache.save(self._snapshot)
            except (OSError, LockTimeout) as exc:
                logger.warning("Could not write snapshot cache: %s", exc)

        for fn in list(self._listeners):
            try:
                fn(copy.deepcopy(self._snapshot), origin)
            except Exception:
                logger.exception("Replica listener %r failed", fn)
