"""Shared CLI helpers: config resolution, session running, output utilities."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import NoReturn, TypeVar

import click

from albumsync.core.albums import find_album, find_photo
from albumsync.core.models import Album, Photo, Snapshot
from albumsync.storage.cache import SnapshotCache
from albumsync.sync.client import RemoteStoreClient
from albumsync.sync.config import (
    SyncConfig,
    load_sync_config,
    resolve_cache_path,
    validate_sync_config,
)
from albumsync.sync.guard import SyncSession
from albumsync.sync.replica import LocalReplica
from albumsync.sync.scheduler import PullOutcome, PushResult, SyncScheduler

T = TypeVar("T")


class CommandError(Exception):
    """Raised inside a session callback to abort with a coded error."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    # httpx logs every request at INFO; only show that with -v.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(*, data: object, human_message: str, is_json: bool) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def require_config(is_json: bool) -> SyncConfig:
    """Load config honouring the group-level overrides, or exit on error."""
    ctx = click.get_current_context()
    ctx.ensure_object(dict)
    if "_config" in ctx.obj:
        return ctx.obj["_config"]

    try:
        config = load_sync_config(ctx.obj.get("config_path"))
    except (OSError, ValueError) as exc:
        output_error(f"Could not load config: {exc}", "INVALID_CONFIG", is_json)

    if ctx.obj.get("endpoint"):
        config["endpoint"] = ctx.obj["endpoint"]
    if ctx.obj.get("author"):
        config["author"] = ctx.obj["author"]

    problems = validate_sync_config(config)
    if problems:
        output_error("; ".join(problems), "INVALID_CONFIG", is_json)

    ctx.obj["_config"] = config
    return config


def open_cache(config: SyncConfig) -> SnapshotCache:
    return SnapshotCache(resolve_cache_path(config))


# ---------------------------------------------------------------------------
# Session runner
# ---------------------------------------------------------------------------


def build_scheduler(config: SyncConfig) -> SyncScheduler:
    """Wire client, cached replica and session together from *config*."""
    client = RemoteStoreClient(
        config["endpoint"],
        timeout=config["timeout"],
        max_payload_bytes=config["max_payload_bytes"],
    )
    replica = LocalReplica.from_cache(open_cache(config))
    session = SyncSession(config.get("author"), quiet_period=config["quiet_period"])
    return SyncScheduler(client, replica, session, interval=config["pull_interval"])


def run_with_scheduler(
    config: SyncConfig,
    fn: Callable[[SyncScheduler], Awaitable[T]],
    is_json: bool,
    *,
    require_pull: bool = True,
) -> T:
    """Force a pull, run *fn*, wait for its pushes, and close the client.

    With *require_pull* a failed initial pull aborts the command, since
    writing from a stale local copy would overwrite other clients' work.
    """

    async def _run() -> T:
        scheduler = build_scheduler(config)
        try:
            outcome = await scheduler.pull(force=True)
            if outcome is PullOutcome.FAILED and require_pull:
                raise CommandError(
                    f"Could not sync with {config['endpoint']}: {scheduler.last_error}",
                    "SYNC_FAILED",
                )
            result = await fn(scheduler)
            await scheduler.flush()
            return result
        finally:
            await scheduler.stop()
            await scheduler.client.aclose()

    try:
        return asyncio.run(_run())
    except CommandError as exc:
        output_error(str(exc), exc.code, is_json)


def check_push(result: PushResult) -> None:
    """Turn a failed push into a :class:`CommandError`."""
    if result.ok:
        return
    if result.too_large:
        raise CommandError(result.error or "Payload too large.", "PAYLOAD_TOO_LARGE")
    raise CommandError(
        f"Change saved locally but not shared yet: {result.error}", "PUSH_FAILED"
    )


def require_album(snapshot: Snapshot, album_id: str) -> Album:
    album = find_album(snapshot, album_id)
    if album is None:
        raise CommandError(f"Album '{album_id}' not found.", "NOT_FOUND")
    return album


def require_photo(snapshot: Snapshot, album_id: str, photo_id: str) -> Photo:
    require_album(snapshot, album_id)
    found = find_photo(snapshot, photo_id, album_id)
    if found is None:
        raise CommandError(f"Photo '{photo_id}' not found in album '{album_id}'.", "NOT_FOUND")
    return found[1]


def common_options(f):  # noqa: ANN001, ANN201
    """Decorator adding the options every subcommand accepts."""
    f = click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")(f)
    return f


def describe_path(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)
