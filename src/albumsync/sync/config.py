"""Sync configuration management.

Stored in ``<app home>/config.json`` (see :func:`albumsync.storage.fs.app_home`).
Values from the file are layered over :func:`default_sync_config`, then
``ALBUMSYNC_*`` environment variables override both.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TypedDict

from albumsync.storage.fs import app_home, atomic_write

CONFIG_FILENAME = "config.json"
CACHE_FILENAME = "snapshot.json"

# Environment variable -> (config key, converter)
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "ALBUMSYNC_ENDPOINT": ("endpoint", str),
    "ALBUMSYNC_PULL_INTERVAL": ("pull_interval", float),
    "ALBUMSYNC_QUIET_PERIOD": ("quiet_period", float),
    "ALBUMSYNC_TIMEOUT": ("timeout", float),
    "ALBUMSYNC_MAX_PAYLOAD_BYTES": ("max_payload_bytes", int),
    "ALBUMSYNC_CACHE_PATH": ("cache_path", str),
    "ALBUMSYNC_AUTHOR": ("author", str),
}

MIN_PULL_INTERVAL = 1.0
MAX_PULL_INTERVAL = 300.0


class SyncConfig(TypedDict, total=False):
    endpoint: str
    pull_interval: float
    quiet_period: float
    timeout: float
    max_payload_bytes: int
    cache_path: str | None
    author: str | None


def default_sync_config() -> SyncConfig:
    """Return default sync configuration."""
    return {
        "endpoint": "http://127.0.0.1:9800/albums",
        "pull_interval": 10.0,
        "quiet_period": 3.0,
        "timeout": 30.0,
        # The hosted key/value stores the web client used reject bodies
        # somewhere around a megabyte; stay under that.
        "max_payload_bytes": 1_000_000,
        "cache_path": None,
        "author": None,
    }


def default_config_path() -> Path:
    return app_home() / CONFIG_FILENAME


def resolve_cache_path(config: SyncConfig) -> Path:
    """Return the snapshot cache location for *config*."""
    raw = config.get("cache_path")
    if raw:
        return Path(raw).expanduser()
    return app_home() / CACHE_FILENAME


def load_sync_config(path: Path | None = None, *, env: dict[str, str] | None = None) -> SyncConfig:
    """Load sync configuration, falling back to defaults for missing keys.

    Raises ``ValueError`` if the file exists but is not a JSON object, or an
    environment override cannot be converted.
    """
    config = default_sync_config()
    config_path = path or default_config_path()

    if config_path.exists():
        data = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a JSON object.")
        for key, value in data.items():
            if key in config:
                config[key] = value

    environ = os.environ if env is None else env
    for var, (key, convert) in _ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            config[key] = convert(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {var}: '{raw}'") from None

    return config


def save_sync_config(path: Path, config: SyncConfig) -> None:
    """Save sync configuration to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, json.dumps(config, sort_keys=True, indent=2) + "\n")


def validate_sync_config(config: SyncConfig) -> list[str]:
    """Return a list of problems with *config*; empty when valid."""
    errors: list[str] = []

    endpoint = config.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint.startswith(("http://", "https://")):
        errors.append(f"endpoint must be an http(s) URL, got {endpoint!r}")

    interval = config.get("pull_interval")
    if not isinstance(interval, (int, float)) or not (
        MIN_PULL_INTERVAL <= interval <= MAX_PULL_INTERVAL
    ):
        errors.append(
            f"pull_interval must be between {MIN_PULL_INTERVAL:g} and "
            f"{MAX_PULL_INTERVAL:g} seconds, got {interval!r}"
        )

    quiet = config.get("quiet_period")
    if not isinstance(quiet, (int, float)) or quiet < 0:
        errors.append(f"quiet_period must be a non-negative number, got {quiet!r}")

    timeout = config.get("timeout")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        errors.append(f"timeout must be a positive number, got {timeout!r}")

    limit = config.get("max_payload_bytes")
    if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
        errors.append(f"max_payload_bytes must be a positive integer, got {limit!r}")

    return errors
