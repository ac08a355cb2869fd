"""Album, Photo and Comment shapes, the wire codec, and invariant checks.

Entities are plain dicts.  Inside the package keys are snake_case; the
remote document uses the camelCase keys the web client has always written
(``createdAt``, ``deletedAt``), so every snapshot crossing the network goes
through :func:`snapshot_to_wire` / :func:`snapshot_from_wire`.

A tombstone is the *presence* of ``deleted_at``.  Live entities never carry
the key at all, and the codec never emits ``null`` for it.
"""

from __future__ import annotations

import json
from typing import TypedDict

from albumsync.core.ids import (
    generate_album_id,
    generate_comment_id,
    generate_photo_id,
    is_opaque_id,
    now_ms,
)


class Comment(TypedDict):
    id: str
    author: str
    text: str
    timestamp: int


class _PhotoRequired(TypedDict):
    id: str
    url: str
    timestamp: int
    comments: list[Comment]


class Photo(_PhotoRequired, total=False):
    caption: str
    author: str
    deleted_at: int


class _AlbumRequired(TypedDict):
    id: str
    name: str
    created_at: int
    photos: list[Photo]


class Album(_AlbumRequired, total=False):
    deleted_at: int


Snapshot = list[Album]


class SnapshotFormatError(ValueError):
    """Raised when a remote or cached value cannot be decoded as a snapshot."""


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def _require_text(value: str, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} must be a non-empty string.")
    return value.strip()


def new_album(name: str, *, album_id: str | None = None, now: int | None = None) -> Album:
    """Build a live, empty album.  Blank names are rejected."""
    return {
        "id": album_id or generate_album_id(),
        "name": _require_text(name, "Album name"),
        "created_at": now_ms() if now is None else now,
        "photos": [],
    }


def new_photo(
    url: str,
    *,
    author: str | None = None,
    caption: str | None = None,
    photo_id: str | None = None,
    now: int | None = None,
) -> Photo:
    """Build a live photo around a media-pipeline *url*.

    The url is opaque here: a CDN location or a data URI are equally fine.
    """
    if not isinstance(url, str) or not url:
        raise ValueError("Photo url must be a non-empty string.")
    photo: Photo = {
        "id": photo_id or generate_photo_id(),
        "url": url,
        "timestamp": now_ms() if now is None else now,
        "comments": [],
    }
    if author:
        photo["author"] = author
    if caption:
        photo["caption"] = caption
    return photo


def new_comment(
    author: str,
    text: str,
    *,
    comment_id: str | None = None,
    now: int | None = None,
) -> Comment:
    """Build a comment.  Text is stripped and must not be empty."""
    return {
        "id": comment_id or generate_comment_id(),
        "author": author or "",
        "text": _require_text(text, "Comment text"),
        "timestamp": now_ms() if now is None else now,
    }


# ---------------------------------------------------------------------------
# Wire codec
# ---------------------------------------------------------------------------

_ALBUM_WIRE_KEYS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "created_at": "createdAt",
    "deleted_at": "deletedAt",
}

_PHOTO_WIRE_KEYS: dict[str, str] = {
    "id": "id",
    "url": "url",
    "timestamp": "timestamp",
    "caption": "caption",
    "author": "author",
    "deleted_at": "deletedAt",
}

_COMMENT_WIRE_KEYS: dict[str, str] = {
    "id": "id",
    "author": "author",
    "text": "text",
    "timestamp": "timestamp",
}


def _to_wire(entity: dict, keys: dict[str, str]) -> dict:
    out: dict = {}
    for local, wire in keys.items():
        if local in entity and entity[local] is not None:
            out[wire] = entity[local]
    return out


_TIMESTAMP_KEYS = frozenset({"created_at", "timestamp", "deleted_at"})


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _decode_field(local: str, wire: str, value: object, kind: str) -> object:
    if local == "id":
        # Older clients wrote numeric ids; ids are opaque strings from here on.
        if isinstance(value, str):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
    elif local in _TIMESTAMP_KEYS:
        if _is_number(value):
            return int(value)
    elif isinstance(value, str):
        return value
    raise SnapshotFormatError(f"{kind} field {wire!r} has unexpected type {type(value).__name__}.")


def _from_wire(data: object, keys: dict[str, str], kind: str) -> dict:
    if not isinstance(data, dict):
        raise SnapshotFormatError(f"Expected a JSON object for {kind}, got {type(data).__name__}.")
    out: dict = {}
    for local, wire in keys.items():
        value = data.get(wire)
        if value is not None:
            out[local] = _decode_field(local, wire, value, kind)
    if "id" not in out:
        raise SnapshotFormatError(f"{kind} is missing an id.")
    return out


def _wire_list(data: dict, key: str, kind: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotFormatError(
            f"{kind} field {key!r} must be a JSON array, got {type(value).__name__}."
        )
    return value


def photo_to_wire(photo: Photo) -> dict:
    """Encode one photo, comments included."""
    out = _to_wire(photo, _PHOTO_WIRE_KEYS)
    out["comments"] = [_to_wire(c, _COMMENT_WIRE_KEYS) for c in photo.get("comments", [])]
    return out


def album_to_wire(album: Album) -> dict:
    out = _to_wire(album, _ALBUM_WIRE_KEYS)
    out["photos"] = [photo_to_wire(p) for p in album.get("photos", [])]
    return out


def snapshot_to_wire(snapshot: Snapshot) -> list[dict]:
    """Encode a snapshot into the camelCase JSON-ready structure."""
    return [album_to_wire(album) for album in snapshot]


def snapshot_from_wire(data: object) -> Snapshot:
    """Decode a remote/cached JSON value into a snapshot.

    Unknown keys are dropped.  Missing ``photos`` / ``comments`` become empty
    lists.  Anything that is not a list of objects, or a known field with the
    wrong JSON type, raises :class:`SnapshotFormatError`.
    """
    if not isinstance(data, list):
        raise SnapshotFormatError(
            f"Expected a JSON array of albums, got {type(data).__name__}."
        )
    snapshot: Snapshot = []
    for raw_album in data:
        album = _from_wire(raw_album, _ALBUM_WIRE_KEYS, "album")
        album.setdefault("name", "")
        album.setdefault("created_at", 0)
        photos = []
        for raw_photo in _wire_list(raw_album, "photos", "album"):
            photo = _from_wire(raw_photo, _PHOTO_WIRE_KEYS, "photo")
            photo.setdefault("url", "")
            photo.setdefault("timestamp", 0)
            photo["comments"] = [
                _from_wire(c, _COMMENT_WIRE_KEYS, "comment")
                for c in _wire_list(raw_photo, "comments", "photo")
            ]
            photos.append(photo)
        album["photos"] = photos
        snapshot.append(album)
    return snapshot


def serialize_snapshot(snapshot: Snapshot) -> str:
    """Compact JSON of the wire form.  This is the exact push body."""
    return json.dumps(snapshot_to_wire(snapshot), separators=(",", ":"), ensure_ascii=False)


def payload_size(snapshot: Snapshot) -> int:
    """Return the UTF-8 byte length of the serialized snapshot."""
    return len(serialize_snapshot(snapshot).encode("utf-8"))


# ---------------------------------------------------------------------------
# Invariant checks
# ---------------------------------------------------------------------------


def validate_snapshot(snapshot: Snapshot) -> list[str]:
    """Return human-readable descriptions of invariant violations.

    An empty list means the snapshot is well formed.  Violations are
    reported, not repaired: the remote document is authoritative.
    """
    problems: list[str] = []
    seen_albums: set[str] = set()

    for album in snapshot:
        album_id = album.get("id")
        if not is_opaque_id(album_id):
            problems.append(f"Album with invalid id: {album_id!r}")
            continue
        if album_id in seen_albums:
            problems.append(f"Duplicate album id: {album_id}")
        seen_albums.add(album_id)

        problem = _tombstone_problem(album, "created_at")
        if problem:
            problems.append(f"Album {album_id} {problem}")

        seen_photos: set[str] = set()
        for photo in album.get("photos", []):
            photo_id = photo.get("id")
            if photo_id in seen_photos:
                problems.append(f"Duplicate photo id {photo_id} in album {album_id}")
            seen_photos.add(photo_id)
            problem = _tombstone_problem(photo, "timestamp")
            if problem:
                problems.append(f"Photo {photo_id} {problem}")

    return problems


def _tombstone_problem(entity: dict, created_key: str) -> str | None:
    deleted = entity.get("deleted_at")
    if deleted is None:
        return None
    created = entity.get(created_key, 0)
    if not _is_number(deleted) or not _is_number(created):
        return f"has a non-numeric deleted_at or {created_key}"
    if deleted < created:
        return f"deleted_at precedes {created_key}"
    return None
