"""Album commands: create, rename, archive, restore, list."""

from __future__ import annotations

import click

from albumsync.cli.helpers import (
    CommandError,
    check_push,
    common_options,
    output_result,
    require_album,
    require_config,
    run_with_scheduler,
)
from albumsync.cli.main import cli
from albumsync.core.ids import generate_album_id
from albumsync.core.models import album_to_wire, snapshot_to_wire
from albumsync.core.views import (
    SORT_ORDERS,
    archived_albums,
    is_archived,
    live_albums,
    live_photos,
    search_albums,
    sort_albums,
)
from albumsync.sync.scheduler import SyncScheduler


@cli.group()
def album() -> None:
    """Create, rename, archive and restore albums."""


@album.command("create")
@click.argument("name")
@click.option("--id", "album_id", default=None, help="Album id (generated when omitted).")
@common_options
def create_cmd(name: str, album_id: str | None, output_json: bool) -> None:
    """Create a new, empty album."""
    config = require_config(output_json)
    album_id = album_id or generate_album_id()

    async def _create(scheduler: SyncScheduler) -> dict:
        try:
            future = scheduler.create_album(name, album_id=album_id)
        except ValueError as exc:
            raise CommandError(str(exc), "INVALID_INPUT") from None
        check_push(await future)
        return require_album(scheduler.replica.snapshot, album_id)

    created = run_with_scheduler(config, _create, output_json)
    output_result(
        data=album_to_wire(created),
        human_message=f"Created album {created['id']} \"{created['name']}\"",
        is_json=output_json,
    )


@album.command("rename")
@click.argument("album_id")
@click.argument("name")
@common_options
def rename_cmd(album_id: str, name: str, output_json: bool) -> None:
    """Rename an album."""
    config = require_config(output_json)

    async def _rename(scheduler: SyncScheduler) -> dict:
        require_album(scheduler.replica.snapshot, album_id)
        try:
            future = scheduler.rename_album(album_id, name)
        except ValueError as exc:
            raise CommandError(str(exc), "INVALID_INPUT") from None
        check_push(await future)
        return require_album(scheduler.replica.snapshot, album_id)

    renamed = run_with_scheduler(config, _rename, output_json)
    output_result(
        data=album_to_wire(renamed),
        human_message=f"Renamed album {album_id} to \"{renamed['name']}\"",
        is_json=output_json,
    )


@album.command("archive")
@click.argument("album_id")
@common_options
def archive_cmd(album_id: str, output_json: bool) -> None:
    """Move an album to the archive (restorable)."""
    config = require_config(output_json)

    async def _archive(scheduler: SyncScheduler) -> dict:
        if is_archived(require_album(scheduler.replica.snapshot, album_id)):
            raise CommandError(f"Album '{album_id}' is already archived.", "ALREADY_ARCHIVED")
        check_push(await scheduler.archive_album(album_id))
        return require_album(scheduler.replica.snapshot, album_id)

    archived = run_with_scheduler(config, _archive, output_json)
    output_result(
        data=album_to_wire(archived),
        human_message=f"Archived album {album_id}",
        is_json=output_json,
    )


@album.command("restore")
@click.argument("album_id")
@common_options
def restore_cmd(album_id: str, output_json: bool) -> None:
    """Bring an archived album back."""
    config = require_config(output_json)

    async def _restore(scheduler: SyncScheduler) -> dict:
        if not is_archived(require_album(scheduler.replica.snapshot, album_id)):
            raise CommandError(f"Album '{album_id}' is not archived.", "NOT_ARCHIVED")
        check_push(await scheduler.restore_album(album_id))
        return require_album(scheduler.replica.snapshot, album_id)

    restored = run_with_scheduler(config, _restore, output_json)
    output_result(
        data=album_to_wire(restored),
        human_message=f"Restored album {album_id}",
        is_json=output_json,
    )


@album.command("list")
@click.option("--archived", is_flag=True, help="List archived albums instead of live ones.")
@click.option("--search", "term", default="", help="Only albums whose name contains this.")
@click.option(
    "--sort",
    "order",
    type=click.Choice(SORT_ORDERS),
    default="newest",
    show_default=True,
    help="Sort order.",
)
@common_options
def list_cmd(archived: bool, term: str, order: str, output_json: bool) -> None:
    """List albums."""
    config = require_config(output_json)

    async def _list(scheduler: SyncScheduler) -> list:
        snapshot = scheduler.replica.snapshot
        albums = archived_albums(snapshot) if archived else live_albums(snapshot)
        return sort_albums(search_albums(albums, term), order)

    albums = run_with_scheduler(config, _list, output_json, require_pull=False)

    if output_json:
        output_result(data=snapshot_to_wire(albums), human_message="", is_json=True)
        return
    if not albums:
        click.echo("No archived albums." if archived else "No albums.")
        return
    for a in albums:
        count = len(live_photos(a))
        click.echo(f"{a['id']}  {a['name']}  ({count} photo{'s' if count != 1 else ''})")
