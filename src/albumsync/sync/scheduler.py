"""Sync scheduler: the single entry point for mutations, pushes and pulls.

Flow::

    mutate(fn) -> replica.apply(fn)            (visible immediately)
               -> push queue -> client.push()  (one at a time, in order)

    timer (every ``interval`` s) -> pull()     (skipped while the guard vetoes)
                                 -> replica.replace(remote)

Consistency model: last writer wins, at whole-document granularity.  An
allowed pull replaces the replica without merging, and the store keeps
whichever push landed last.  Two clients that edit from snapshots that do
not include each other's changes will lose one side's edits.  The guard only
protects a client from reverting *its own* recent writes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from albumsync.core import albums as album_ops
from albumsync.core import tombstones
from albumsync.core.ids import now_ms
from albumsync.core.models import (
    Snapshot,
    SnapshotFormatError,
    new_album,
    new_comment,
    new_photo,
    validate_snapshot,
)
from albumsync.sync.client import PayloadTooLargeError, RemoteStoreClient, RemoteStoreError
from albumsync.sync.guard import SyncSession
from albumsync.sync.replica import LocalReplica

logger = logging.getLogger(__name__)

TOO_LARGE_HINT = (
    "The collection is too large for the document store. "
    "Add fewer photos at once, or use smaller images, and try again."
)

_VETO_LOCAL_CHANGE = "local change during pull"


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    LIVE = "live"
    ERROR = "error"


class PullOutcome(str, Enum):
    APPLIED = "applied"
    EMPTY = "empty"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PushResult:
    """What happened to one queued snapshot."""

    ok: bool
    error: str | None = None
    too_large: bool = False


class SyncScheduler:
    """Owns the push queue, the pull timer and the sync-status signal."""

    def __init__(
        self,
        client: RemoteStoreClient,
        replica: LocalReplica,
        session: SyncSession | None = None,
        *,
        interval: float = 10.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.client = client
        self.replica = replica
        self.session = session or SyncSession()
        self.interval = interval

        self.status = SyncStatus.IDLE
        self.last_error: str | None = None
        self._status_listeners: list[Callable[[SyncStatus, str | None], None]] = []
        # Bumped on every status change so a discarded pull can tell whether
        # anything else reported status while it was out.
        self._status_version = 0

        self._queue: asyncio.Queue[tuple[Snapshot, asyncio.Future]] | None = None
        self._worker: asyncio.Task | None = None
        self._timer: asyncio.Task | None = None
        # Bumped on every local mutation; a pull that straddles one is stale.
        self._generation = 0

    # ------------------------------------------------------------------
    # Status signal
    # ------------------------------------------------------------------

    def add_status_listener(self, fn: Callable[[SyncStatus, str | None], None]) -> None:
        self._status_listeners.append(fn)

    def remove_status_listener(self, fn: Callable[[SyncStatus, str | None], None]) -> None:
        try:
            self._status_listeners.remove(fn)
        except ValueError:
            pass

    def _set_status(self, status: SyncStatus, error: str | None = None) -> None:
        self.last_error = error
        self._status_version += 1
        if status is self.status and error is None:
            return
        self.status = status
        for fn in list(self._status_listeners):
            try:
                fn(status, error)
            except Exception:
                logger.exception("Status listener %r failed", fn)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def start(self, *, initial_pull: bool = True) -> None:
        """Start the push worker and the periodic pull timer.

        The first pull is forced so a cached or empty replica is replaced by
        the remote state straight away.
        """
        self._ensure_worker()
        if initial_pull:
            await self.pull(force=True)
        if not self.running:
            self._timer = asyncio.create_task(self._run_timer())

    async def stop(self) -> None:
        """Stop the timer, let queued pushes finish, then stop the worker."""
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

        await self.flush()

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def flush(self) -> None:
        """Wait until every queued snapshot has been pushed (or has failed)."""
        if self._queue is not None:
            await self._queue.join()

    async def identify(self, author: str) -> PullOutcome:
        """Set the session identity, then force a pull.

        Called right after login so a newly joined client does not sit on an
        empty or default snapshot until the next tick.
        """
        self.session.author = author
        return await self.pull(force=True)

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.pull()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduled pull crashed; will retry next tick")

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def pull(self, *, force: bool = False) -> PullOutcome:
        """Fetch the remote snapshot and replace the replica with it.

        A non-forced pull is skipped while the session vetoes it, and its
        result is discarded if a local mutation or push started while the
        request was out.  A forced pull bypasses both checks.
        """
        if not force:
            veto = self.session.pull_veto()
            if veto is not None:
                logger.debug("Pull skipped: %s", veto)
                return PullOutcome.SKIPPED

        generation = self._generation
        previous_status, previous_error = self.status, self.last_error
        self._set_status(SyncStatus.SYNCING)
        status_version = self._status_version
        try:
            remote = await self.client.pull()
        except (RemoteStoreError, SnapshotFormatError) as exc:
            logger.warning("Pull failed, keeping local snapshot: %s", exc)
            self._set_status(SyncStatus.ERROR, str(exc))
            return PullOutcome.FAILED
        except Exception as exc:
            logger.exception("Pull crashed, keeping local snapshot")
            self._set_status(SyncStatus.ERROR, f"Pull failed: {exc}")
            return PullOutcome.FAILED

        if not force:
            veto = self.session.pull_veto()
            if veto is None and generation != self._generation:
                veto = _VETO_LOCAL_CHANGE
            if veto is not None:
                logger.debug("Discarding pulled snapshot: %s", veto)
                if self._status_version == status_version:
                    self._set_status(previous_status, previous_error)
                return PullOutcome.SKIPPED

        if remote is None:
            self.replica.replace([])
            self._set_status(SyncStatus.LIVE)
            return PullOutcome.EMPTY

        for problem in validate_snapshot(remote):
            logger.warning("Remote snapshot: %s", problem)
        self.replica.replace(remote)
        self._set_status(SyncStatus.LIVE)
        return PullOutcome.APPLIED

    # ------------------------------------------------------------------
    # Mutate / push
    # ------------------------------------------------------------------

    def mutate(self, fn: Callable[[Snapshot], Snapshot]) -> asyncio.Future[PushResult]:
        """Apply *fn* to the replica now and queue the result for pushing.

        Must be called from inside the running event loop.  Exceptions from
        *fn* propagate and nothing is queued.  The returned future resolves
        with a :class:`PushResult` once this snapshot's push has finished; it
        never raises for store failures.
        """
        snapshot = self.replica.apply(fn)
        self._generation += 1

        future: asyncio.Future[PushResult] = asyncio.get_running_loop().create_future()
        self._ensure_worker()
        self.session.pending_pushes += 1
        self._queue.put_nowait((snapshot, future))
        return future

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._push_worker())

    async def _push_worker(self) -> None:
        while True:
            snapshot, future = await self._queue.get()
            try:
                result = await self._push(snapshot)
            except asyncio.CancelledError:
                future.cancel()
                raise
            finally:
                self.session.pending_pushes -= 1
                self._queue.task_done()
            if not future.done():
                future.set_result(result)

    async def _push(self, snapshot: Snapshot) -> PushResult:
        self._set_status(SyncStatus.SYNCING)
        try:
            with self.session.pushing():
                await self.client.push(snapshot)
        except PayloadTooLargeError as exc:
            message = f"{exc}. {TOO_LARGE_HINT}"
            logger.error("Push rejected: %s", message)
            self._set_status(SyncStatus.ERROR, message)
            return PushResult(ok=False, error=message, too_large=True)
        except RemoteStoreError as exc:
            # The optimistic change stays in the replica; the user keeps their edit.
            logger.warning("Push failed, change not shared yet: %s", exc)
            self._set_status(SyncStatus.ERROR, str(exc))
            return PushResult(ok=False, error=str(exc))
        except Exception as exc:
            logger.exception("Push crashed, change not shared yet")
            message = f"Push failed: {exc}"
            self._set_status(SyncStatus.ERROR, message)
            return PushResult(ok=False, error=message)

        self._set_status(SyncStatus.LIVE)
        return PushResult(ok=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_album(self, name: str, *, album_id: str | None = None) -> asyncio.Future[PushResult]:
        album = new_album(name, album_id=album_id)
        return self.mutate(lambda s: album_ops.create_album(s, album))

    def rename_album(self, album_id: str, name: str) -> asyncio.Future[PushResult]:
        return self.mutate(lambda s: album_ops.rename_album(s, album_id, name))

    def add_photos(self, album_id: str, urls: Iterable[str]) -> asyncio.Future[PushResult]:
        """Prepend one photo per url, stamped with the session author."""
        now = now_ms()
        photos = [new_photo(url, author=self.session.author, now=now) for url in urls]
        return self.mutate(lambda s: album_ops.add_photos(s, album_id, photos))

    async def upload_photos(
        self,
        album_id: str,
        sources: Iterable[object],
        uploader: Callable[[object], Awaitable[str]],
    ) -> PushResult:
        """Upload *sources* through *uploader*, then add the resulting urls.

        Scheduled pulls are held off for the whole upload so a refresh cannot
        land between "files chosen" and "photos added".
        """
        with self.session.working():
            urls = await asyncio.gather(*(uploader(src) for src in sources))
            future = self.add_photos(album_id, urls)
        return await future

    def add_comment(self, album_id: str, photo_id: str, text: str) -> asyncio.Future[PushResult]:
        comment = new_comment(self.session.author or "", text)
        return self.mutate(lambda s: album_ops.add_comment(s, album_id, photo_id, comment))

    def set_caption(
        self, photo_id: str, text: str | None, *, album_id: str | None = None
    ) -> asyncio.Future[PushResult]:
        return self.mutate(lambda s: album_ops.set_caption(s, photo_id, text, album_id=album_id))

    def archive_album(self, album_id: str) -> asyncio.Future[PushResult]:
        return self.mutate(lambda s: tombstones.archive_album(s, album_id))

    def restore_album(self, album_id: str) -> asyncio.Future[PushResult]:
        return self.mutate(lambda s: tombstones.restore_album(s, album_id))

    def archive_photo(self, album_id: str, photo_id: str) -> asyncio.Future[PushResult]:
        return self.mutate(lambda s: tombstones.archive_photo(s, album_id, photo_id))

    def restore_photo(self, album_id: str, photo_id: str) -> asyncio.Future[PushResult]:
        return self.mutate(lambda s: tombstones.restore_photo(s, album_id, photo_id))
