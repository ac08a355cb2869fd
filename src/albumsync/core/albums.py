"""Album and photo mutations as pure snapshot transformations.

Every function here takes a snapshot and returns a *new* snapshot.  The
input is never modified, so the result of one call can be handed straight to
``LocalReplica.apply`` and the previous value stays valid for comparison.
Unknown album/photo ids make a mutation a no-op rather than an error: the
target may have been removed by another client's push since the caller last
looked.
"""

from __future__ import annotations

import copy

from albumsync.core.models import Album, Comment, Photo, Snapshot

# Used when the caption generator returns nothing usable.
DEFAULT_CAPTION = "Momen indah yang abadi."


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def find_album(snapshot: Snapshot, album_id: str) -> Album | None:
    """Return the album with *album_id*, archived or not."""
    for album in snapshot:
        if album["id"] == album_id:
            return album
    return None


def find_photo(
    snapshot: Snapshot, photo_id: str, album_id: str | None = None
) -> tuple[Album, Photo] | None:
    """Return ``(album, photo)`` for *photo_id*.

    With *album_id* the search is scoped to that album; otherwise the first
    album holding the photo wins.
    """
    for album in snapshot:
        if album_id is not None and album["id"] != album_id:
            continue
        for photo in album["photos"]:
            if photo["id"] == photo_id:
                return album, photo
    return None


def _copy(snapshot: Snapshot) -> Snapshot:
    return copy.deepcopy(snapshot)


# ---------------------------------------------------------------------------
# Album mutations
# ---------------------------------------------------------------------------


def create_album(snapshot: Snapshot, album: Album) -> Snapshot:
    """Append *album* to the collection.

    Raises ``ValueError`` if an album with the same id already exists.
    """
    if find_album(snapshot, album["id"]) is not None:
        raise ValueError(f"Album id already exists: {album['id']}")
    result = _copy(snapshot)
    result.append(copy.deepcopy(album))
    return result


def rename_album(snapshot: Snapshot, album_id: str, name: str) -> Snapshot:
    """Set the display name of *album_id*."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Album name must be a non-empty string.")
    result = _copy(snapshot)
    album = find_album(result, album_id)
    if album is not None:
        album["name"] = name.strip()
    return result


# ---------------------------------------------------------------------------
# Photo mutations
# ---------------------------------------------------------------------------


def add_photos(snapshot: Snapshot, album_id: str, photos: list[Photo]) -> Snapshot:
    """Prepend *photos* to the album, keeping the batch in the given order.

    Photos whose id is already present in the album are skipped.
    """
    result = _copy(snapshot)
    album = find_album(result, album_id)
    if album is None:
        return result

    existing = {p["id"] for p in album["photos"]}
    batch: list[Photo] = []
    for photo in photos:
        if photo["id"] in existing:
            continue
        existing.add(photo["id"])
        batch.append(copy.deepcopy(photo))
    album["photos"] = batch + album["photos"]
    return result


def add_comment(
    snapshot: Snapshot, album_id: str, photo_id: str, comment: Comment
) -> Snapshot:
    """Append *comment* to a photo's thread."""
    result = _copy(snapshot)
    found = find_photo(result, photo_id, album_id)
    if found is not None:
        _, photo = found
        photo["comments"].append(copy.deepcopy(comment))
    return result


def set_caption(
    snapshot: Snapshot,
    photo_id: str,
    text: str | None,
    *,
    album_id: str | None = None,
) -> Snapshot:
    """Set a photo's caption.

    This is the one entry point for generated captions.  Empty or missing
    text falls back to :data:`DEFAULT_CAPTION`.
    """
    caption = text.strip() if isinstance(text, str) else ""
    result = _copy(snapshot)
    found = find_photo(result, photo_id, album_id)
    if found is not None:
        _, photo = found
        photo["caption"] = caption or DEFAULT_CAPTION
    return result
