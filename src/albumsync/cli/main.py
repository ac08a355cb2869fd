"""CLI entry point and top-level commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from albumsync.cli.helpers import (
    build_scheduler,
    common_options,
    configure_logging,
    describe_path,
    open_cache,
    output_error,
    output_result,
    require_config,
    run_with_scheduler,
)
from albumsync.core.views import archived_albums, archived_photo_entries, live_albums, live_photos
from albumsync.sync.scheduler import SyncScheduler, SyncStatus


def _summary(snapshot: list) -> dict:
    live = live_albums(snapshot)
    return {
        "albums": len(live),
        "archived_albums": len(archived_albums(snapshot)),
        "photos": sum(len(live_photos(a)) for a in live),
        "archived_photos": len(archived_photo_entries(snapshot)),
    }


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (defaults to ~/.config/albumsync/config.json).",
)
@click.option("--endpoint", default=None, help="Document store URL, overrides config.")
@click.option("--author", default=None, help="Display name stamped on new photos and comments.")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    endpoint: str | None,
    author: str | None,
    verbose: bool,
) -> None:
    """albumsync: shared photo albums synced through one remote document."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["endpoint"] = endpoint
    ctx.obj["author"] = author


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--port", default=9800, type=int, help="Port to bind to.")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Persist stored documents here (in-memory only when omitted).",
)
@click.option(
    "--max-body-bytes",
    default=1_000_000,
    type=int,
    help="Reject POST bodies larger than this with 413.",
)
def serve(host: str, port: int, data_dir: Path | None, max_body_bytes: int) -> None:
    """Run the reference document store server."""
    from albumsync.sync.server import create_server

    try:
        server = create_server(host, port, data_dir=data_dir, max_body_bytes=max_body_bytes)
    except OSError as e:
        raise click.ClickException(f"Cannot bind {host}:{port}: {e}")

    where = f" (persisting to {describe_path(data_dir)})" if data_dir else ""
    click.echo(f"albumsync store: listening on http://{host}:{port}/{where}", err=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        click.echo("\nShutting down.", err=True)
    finally:
        server.server_close()


@cli.command()
@common_options
def pull(output_json: bool) -> None:
    """Force a pull from the document store and refresh the local cache."""
    config = require_config(output_json)

    async def _pull(scheduler: SyncScheduler) -> dict:
        return _summary(scheduler.replica.snapshot)

    data = run_with_scheduler(config, _pull, output_json)
    output_result(
        data=data,
        human_message=(
            f"Synced: {data['albums']} albums, {data['photos']} photos "
            f"({data['archived_albums']} archived albums, "
            f"{data['archived_photos']} archived photos)"
        ),
        is_json=output_json,
    )


@cli.command()
@common_options
def status(output_json: bool) -> None:
    """Show what the local cache holds, without touching the network."""
    config = require_config(output_json)
    cache = open_cache(config)
    snapshot = cache.load()
    if snapshot is None:
        output_error(
            "No local cache yet. Run 'albumsync pull' first.", "NO_CACHE", output_json
        )
    data = _summary(snapshot)
    data["cache_path"] = str(cache.path)
    data["endpoint"] = config["endpoint"]
    output_result(
        data=data,
        human_message=(
            f"Cache {describe_path(cache.path)}: {data['albums']} albums, "
            f"{data['photos']} photos, {data['archived_albums']} archived albums"
        ),
        is_json=output_json,
    )


@cli.command()
@click.option(
    "--duration",
    default=0.0,
    type=float,
    help="Stop after this many seconds (runs until interrupted when 0).",
)
def watch(duration: float) -> None:
    """Keep the local cache in sync, printing status changes."""
    config = require_config(False)

    def _on_status(new_status: SyncStatus, error: str | None) -> None:
        if error:
            click.echo(f"[{new_status.value}] {error}", err=True)
        else:
            click.echo(f"[{new_status.value}]")

    async def _watch() -> None:
        scheduler = build_scheduler(config)
        scheduler.add_status_listener(_on_status)
        try:
            await scheduler.start()
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            await scheduler.stop()
            await scheduler.client.aclose()

    click.echo(
        f"Watching {config['endpoint']} every {config['pull_interval']:g}s (Ctrl-C to stop)",
        err=True,
    )
    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        click.echo("\nStopped.", err=True)


def main() -> None:
    cli(obj={})


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from albumsync.cli import album_cmds as _album_cmds  # noqa: E402, F401
from albumsync.cli import photo_cmds as _photo_cmds  # noqa: E402, F401

if __name__ == "__main__":
    main()
