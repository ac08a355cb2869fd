"""ULID-based identifier generation and the shared millisecond clock."""

from __future__ import annotations

import re
import time

from ulid import ULID

# Crockford Base32 alphabet: 0-9 A-Z excluding I, L, O, U
_CROCKFORD_B32_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)

ALBUM_PREFIX = "alb"
PHOTO_PREFIX = "pho"
COMMENT_PREFIX = "cmt"


def now_ms() -> int:
    """Return the current wall-clock time as integer milliseconds since the epoch.

    Every ``created_at`` / ``timestamp`` / ``deleted_at`` value in a snapshot
    is produced by this function unless a caller passes an explicit value.
    """
    return time.time_ns() // 1_000_000


def generate_album_id() -> str:
    """Generate a new album ID with the alb_ prefix."""
    return f"{ALBUM_PREFIX}_{ULID()}"


def generate_photo_id() -> str:
    """Generate a new photo ID with the pho_ prefix."""
    return f"{PHOTO_PREFIX}_{ULID()}"


def generate_comment_id() -> str:
    """Generate a new comment ID with the cmt_ prefix."""
    return f"{COMMENT_PREFIX}_{ULID()}"


def validate_id(id_str: str, expected_prefix: str) -> bool:
    """Validate a generated ``<prefix>_<ulid>`` identifier.

    Snapshots written by other clients may carry any opaque string as an id
    (the original app used ``Date.now()`` strings), so this is only used to
    recognise ids minted locally, never to reject remote data.
    """
    if not isinstance(id_str, str) or not isinstance(expected_prefix, str):
        return False

    parts = id_str.split("_", maxsplit=1)
    if len(parts) != 2:
        return False

    prefix, ulid_part = parts
    if prefix != expected_prefix:
        return False

    return bool(_CROCKFORD_B32_RE.match(ulid_part))


def is_opaque_id(value: object) -> bool:
    """Return ``True`` if *value* is usable as an entity id (non-empty string)."""
    return isinstance(value, str) and bool(value.strip())
