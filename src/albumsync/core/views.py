"""Read-side filters: live vs. archive partitions, search, sort, navigation.

All read paths must agree on what "archived" means, so every filter here goes
through :func:`is_archived`.
"""

from __future__ import annotations

from collections.abc import Iterable

from albumsync.core.models import Album, Photo, Snapshot

SORT_ORDERS: tuple[str, ...] = ("newest", "oldest", "az")


def is_archived(entity: Album | Photo) -> bool:
    """Return ``True`` when the entity carries a tombstone."""
    return entity.get("deleted_at") is not None


def live_albums(snapshot: Snapshot) -> list[Album]:
    return [a for a in snapshot if not is_archived(a)]


def archived_albums(snapshot: Snapshot) -> list[Album]:
    return [a for a in snapshot if is_archived(a)]


def live_photos(album: Album) -> list[Photo]:
    return [p for p in album["photos"] if not is_archived(p)]


def archived_photos(album: Album) -> list[Photo]:
    return [p for p in album["photos"] if is_archived(p)]


def archived_photo_entries(snapshot: Snapshot) -> list[tuple[str, Photo]]:
    """Every archived photo across all albums, paired with its album id.

    Photos inside an archived album are included only if they carry their
    own tombstone; the album itself shows up in :func:`archived_albums`.
    """
    entries: list[tuple[str, Photo]] = []
    for album in snapshot:
        for photo in archived_photos(album):
            entries.append((album["id"], photo))
    return entries


def search_albums(albums: Iterable[Album], term: str) -> list[Album]:
    """Case-insensitive substring match on album name.  Blank term matches all."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(albums)
    return [a for a in albums if needle in a["name"].lower()]


def sort_albums(albums: Iterable[Album], order: str = "newest") -> list[Album]:
    """Sort albums by ``newest`` / ``oldest`` creation time or ``az`` by name.

    Raises ``ValueError`` for an unknown order.
    """
    if order == "newest":
        return sorted(albums, key=lambda a: a["created_at"], reverse=True)
    if order == "oldest":
        return sorted(albums, key=lambda a: a["created_at"])
    if order == "az":
        return sorted(albums, key=lambda a: a["name"].casefold())
    raise ValueError(f"Unknown sort order: '{order}'. Expected one of {', '.join(SORT_ORDERS)}.")


def step_photo(photos: list[Photo], index: int, direction: str) -> int:
    """Return the lightbox index after moving ``next`` or ``prev``.

    Wraps around at both ends.
    """
    total = len(photos)
    if total == 0:
        raise ValueError("Cannot navigate an empty photo list.")
    if direction == "next":
        return (index + 1) % total
    if direction == "prev":
        return (index - 1 + total) % total
    raise ValueError(f"Unknown direction: '{direction}'. Expected 'next' or 'prev'.")
