"""Soft delete and restore for albums and photos.

Archiving never removes anything from the snapshot; it stamps
``deleted_at``.  Album and photo tombstones are independent layers: archiving
an album leaves its photos' own ``deleted_at`` values alone, so restoring the
album brings back exactly the photo set it had, including photos that were
archived on their own.
"""

from __future__ import annotations

import copy

from albumsync.core.albums import find_album, find_photo
from albumsync.core.ids import now_ms
from albumsync.core.models import Snapshot


def _stamp(entity: dict, created: int, now: int | None) -> None:
    if "deleted_at" in entity:
        # Already archived: keep the original tombstone time.
        return
    ts = now_ms() if now is None else now
    entity["deleted_at"] = max(ts, created)


def archive_album(snapshot: Snapshot, album_id: str, *, now: int | None = None) -> Snapshot:
    """Mark *album_id* archived.  No-op if the album does not exist."""
    result = copy.deepcopy(snapshot)
    album = find_album(result, album_id)
    if album is not None:
        _stamp(album, album.get("created_at", 0), now)
    return result


def restore_album(snapshot: Snapshot, album_id: str) -> Snapshot:
    """Clear the album's tombstone.  Photo tombstones are untouched."""
    result = copy.deepcopy(snapshot)
    album = find_album(result, album_id)
    if album is not None:
        album.pop("deleted_at", None)
    return result


def archive_photo(
    snapshot: Snapshot, album_id: str, photo_id: str, *, now: int | None = None
) -> Snapshot:
    """Mark one photo archived within its parent album."""
    result = copy.deepcopy(snapshot)
    found = find_photo(result, photo_id, album_id)
    if found is not None:
        _, photo = found
        _stamp(photo, photo.get("timestamp", 0), now)
    return result


def restore_photo(snapshot: Snapshot, album_id: str, photo_id: str) -> Snapshot:
    """Clear one photo's tombstone."""
    result = copy.deepcopy(snapshot)
    found = find_photo(result, photo_id, album_id)
    if found is not None:
        _, photo = found
        photo.pop("deleted_at", None)
    return result
