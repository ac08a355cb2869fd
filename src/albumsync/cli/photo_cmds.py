"""Photo, caption and comment commands."""

from __future__ import annotations

import click

from albumsync.cli.helpers import (
    CommandError,
    check_push,
    common_options,
    output_result,
    require_album,
    require_config,
    require_photo,
    run_with_scheduler,
)
from albumsync.cli.main import cli
from albumsync.core.models import photo_to_wire
from albumsync.core.views import archived_photo_entries, archived_photos, is_archived, live_photos
from albumsync.sync.scheduler import SyncScheduler


def _photo_line(photo: dict) -> str:
    caption = photo.get("caption") or ""
    author = f" by {photo['author']}" if photo.get("author") else ""
    comments = len(photo["comments"])
    return f"{photo['id']}{author}  {caption}  [{comments} comment{'s' if comments != 1 else ''}]"


@cli.group()
def photo() -> None:
    """Add, caption, archive and restore photos."""


@photo.command("add")
@click.argument("album_id")
@click.argument("urls", nargs=-1, required=True)
@common_options
def add_cmd(album_id: str, urls: tuple[str, ...], output_json: bool) -> None:
    """Add photos (by uploaded URL) to the top of an album.

    URLs come from the media pipeline; they are stored as given.
    """
    config = require_config(output_json)

    async def _add(scheduler: SyncScheduler) -> list:
        if is_archived(require_album(scheduler.replica.snapshot, album_id)):
            raise CommandError(f"Album '{album_id}' is archived.", "ALBUM_ARCHIVED")
        try:
            future = scheduler.add_photos(album_id, urls)
        except ValueError as exc:
            raise CommandError(str(exc), "INVALID_INPUT") from None
        check_push(await future)
        album = require_album(scheduler.replica.snapshot, album_id)
        return album["photos"][: len(urls)]

    added = run_with_scheduler(config, _add, output_json)
    output_result(
        data=[photo_to_wire(p) for p in added],
        human_message=f"Added {len(added)} photo{'s' if len(added) != 1 else ''} to {album_id}",
        is_json=output_json,
    )


@photo.command("caption")
@click.argument("album_id")
@click.argument("photo_id")
@click.argument("text")
@common_options
def caption_cmd(album_id: str, photo_id: str, text: str, output_json: bool) -> None:
    """Set a photo caption (e.g. text from the caption generator)."""
    config = require_config(output_json)

    async def _caption(scheduler: SyncScheduler) -> dict:
        require_photo(scheduler.replica.snapshot, album_id, photo_id)
        check_push(await scheduler.set_caption(photo_id, text, album_id=album_id))
        return require_photo(scheduler.replica.snapshot, album_id, photo_id)

    updated = run_with_scheduler(config, _caption, output_json)
    output_result(
        data=photo_to_wire(updated),
        human_message=f"Caption set on {photo_id}: {updated['caption']}",
        is_json=output_json,
    )


@photo.command("archive")
@click.argument("album_id")
@click.argument("photo_id")
@common_options
def archive_cmd(album_id: str, photo_id: str, output_json: bool) -> None:
    """Move a photo to the archive (restorable)."""
    config = require_config(output_json)

    async def _archive(scheduler: SyncScheduler) -> dict:
        if is_archived(require_photo(scheduler.replica.snapshot, album_id, photo_id)):
            raise CommandError(f"Photo '{photo_id}' is already archived.", "ALREADY_ARCHIVED")
        check_push(await scheduler.archive_photo(album_id, photo_id))
        return require_photo(scheduler.replica.snapshot, album_id, photo_id)

    archived = run_with_scheduler(config, _archive, output_json)
    output_result(
        data=photo_to_wire(archived),
        human_message=f"Archived photo {photo_id}",
        is_json=output_json,
    )


@photo.command("restore")
@click.argument("album_id")
@click.argument("photo_id")
@common_options
def restore_cmd(album_id: str, photo_id: str, output_json: bool) -> None:
    """Bring an archived photo back."""
    config = require_config(output_json)

    async def _restore(scheduler: SyncScheduler) -> dict:
        if not is_archived(require_photo(scheduler.replica.snapshot, album_id, photo_id)):
            raise CommandError(f"Photo '{photo_id}' is not archived.", "NOT_ARCHIVED")
        check_push(await scheduler.restore_photo(album_id, photo_id))
        return require_photo(scheduler.replica.snapshot, album_id, photo_id)

    restored = run_with_scheduler(config, _restore, output_json)
    output_result(
        data=photo_to_wire(restored),
        human_message=f"Restored photo {photo_id}",
        is_json=output_json,
    )


@photo.command("list")
@click.argument("album_id", required=False)
@click.option("--archived", is_flag=True, help="List archived photos instead of live ones.")
@common_options
def list_cmd(album_id: str | None, archived: bool, output_json: bool) -> None:
    """List photos in an album, or every archived photo with --archived."""
    config = require_config(output_json)
    if album_id is None and not archived:
        raise click.UsageError("ALBUM_ID is required unless --archived is given.")

    async def _list(scheduler: SyncScheduler) -> list[tuple[str, dict]]:
        snapshot = scheduler.replica.snapshot
        if album_id is None:
            return archived_photo_entries(snapshot)
        album = require_album(snapshot, album_id)
        photos = archived_photos(album) if archived else live_photos(album)
        return [(album_id, p) for p in photos]

    entries = run_with_scheduler(config, _list, output_json, require_pull=False)

    if output_json:
        data = [dict(photo_to_wire(p), albumId=aid) for aid, p in entries]
        output_result(data=data, human_message="", is_json=True)
        return
    if not entries:
        click.echo("No archived photos." if archived else "No photos.")
        return
    for aid, p in entries:
        prefix = f"{aid}  " if album_id is None else ""
        click.echo(prefix + _photo_line(p))


@cli.group()
def comment() -> None:
    """Comment on photos."""


@comment.command("add")
@click.argument("album_id")
@click.argument("photo_id")
@click.argument("text")
@common_options
def comment_add_cmd(album_id: str, photo_id: str, text: str, output_json: bool) -> None:
    """Append a comment to a photo."""
    config = require_config(output_json)

    async def _comment(scheduler: SyncScheduler) -> dict:
        require_photo(scheduler.replica.snapshot, album_id, photo_id)
        try:
            future = scheduler.add_comment(album_id, photo_id, text)
        except ValueError as exc:
            raise CommandError(str(exc), "INVALID_INPUT") from None
        check_push(await future)
        return require_photo(scheduler.replica.snapshot, album_id, photo_id)["comments"][-1]

    added = run_with_scheduler(config, _comment, output_json)
    output_result(
        data=added,
        human_message=f"Comment {added['id']} added to {photo_id}",
        is_json=output_json,
    )


@comment.command("list")
@click.argument("album_id")
@click.argument("photo_id")
@common_options
def comment_list_cmd(album_id: str, photo_id: str, output_json: bool) -> None:
    """Show a photo's comments, oldest first."""
    config = require_config(output_json)

    async def _list(scheduler: SyncScheduler) -> list:
        return require_photo(scheduler.replica.snapshot, album_id, photo_id)["comments"]

    comments = run_with_scheduler(config, _list, output_json, require_pull=False)

    if output_json:
        output_result(data=comments, human_message="", is_json=True)
        return
    if not comments:
        click.echo("No comments.")
        return
    for c in comments:
        click.echo(f"{c['author'] or 'anonymous'}: {c['text']}")
