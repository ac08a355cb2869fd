"""Multi-client scenarios against one shared document.

These pin down the consistency model: whole-document last writer wins.
"""

from __future__ import annotations

import pytest

from albumsync.core.albums import find_album
from albumsync.core.views import is_archived
from albumsync.sync.guard import SyncSession
from albumsync.sync.replica import LocalReplica
from albumsync.sync.scheduler import PullOutcome, SyncScheduler

pytestmark = pytest.mark.asyncio


def _client(make_client, author: str) -> SyncScheduler:
    return SyncScheduler(make_client(), LocalReplica(), SyncSession(author, quiet_period=0))


async def test_first_client_bootstraps_empty_store(make_client, store) -> None:
    sari = _client(make_client, "Sari")
    try:
        assert await sari.pull(force=True) is PullOutcome.EMPTY
        assert (await sari.create_album("Pertama", album_id="a1")).ok
    finally:
        await sari.stop()
    assert [a["id"] for a in store.document] == ["a1"]

    newcomer = _client(make_client, "Budi")
    assert await newcomer.pull(force=True) is PullOutcome.APPLIED
    assert [a["id"] for a in newcomer.replica.snapshot] == ["a1"]


async def test_second_client_sees_first_clients_work(make_client, store) -> None:
    sari, budi = _client(make_client, "Sari"), _client(make_client, "Budi")
    try:
        await sari.create_album("Arisan", album_id="a1")
        await sari.add_photos("a1", ["https://cdn.test/1.jpg"])

        assert await budi.identify("Budi") is PullOutcome.APPLIED
        photo = budi.replica.snapshot[0]["photos"][0]
        await budi.add_comment("a1", photo["id"], "Mantap")

        await sari.pull()
        comments = sari.replica.snapshot[0]["photos"][0]["comments"]
        assert [(c["author"], c["text"]) for c in comments] == [("Budi", "Mantap")]
    finally:
        await sari.stop()
        await budi.stop()


async def test_concurrent_edits_from_stale_snapshots_lose_one_side(make_client, store) -> None:
    sari, budi = _client(make_client, "Sari"), _client(make_client, "Budi")
    try:
        await sari.pull(force=True)
        await budi.pull(force=True)

        # Neither has pulled the other's change before pushing.
        await sari.create_album("Punya Sari", album_id="s1")
        await budi.create_album("Punya Budi", album_id="b1")

        assert [a["id"] for a in store.document] == ["b1"]

        await sari.pull()
        assert find_album(sari.replica.snapshot, "s1") is None
    finally:
        await sari.stop()
        await budi.stop()


async def test_edits_from_fresh_snapshots_both_survive(make_client, store) -> None:
    sari, budi = _client(make_client, "Sari"), _client(make_client, "Budi")
    try:
        await sari.create_album("Punya Sari", album_id="s1")
        await budi.pull()
        await budi.create_album("Punya Budi", album_id="b1")
        assert [a["id"] for a in store.document] == ["s1", "b1"]
    finally:
        await sari.stop()
        await budi.stop()


async def test_archive_is_visible_to_other_clients_and_restorable(make_client, store) -> None:
    sari, budi = _client(make_client, "Sari"), _client(make_client, "Budi")
    try:
        await sari.create_album("Lama", album_id="a1")
        await budi.pull()
        await budi.archive_album("a1")

        await sari.pull()
        assert is_archived(find_album(sari.replica.snapshot, "a1"))

        await sari.restore_album("a1")
        await budi.pull()
        assert not is_archived(find_album(budi.replica.snapshot, "a1"))
    finally:
        await sari.stop()
        await budi.stop()


async def test_pull_veto_window_covers_push_and_quiet_period(make_client, store) -> None:
    now = [0.0]
    session = SyncSession("Sari", quiet_period=3.0, clock=lambda: now[0])
    sari = SyncScheduler(make_client(), LocalReplica(), session)
    budi = _client(make_client, "Budi")
    try:
        await sari.create_album("Mine", album_id="s1")
        # Another client overwrites the document right after our push.
        await budi.pull(force=True)
        await budi.archive_album("s1")

        now[0] = 2.9
        assert await sari.pull() is PullOutcome.SKIPPED
        assert not is_archived(find_album(sari.replica.snapshot, "s1"))

        now[0] = 3.0
        assert await sari.pull() is PullOutcome.APPLIED
        assert is_archived(find_album(sari.replica.snapshot, "s1"))
    finally:
        await sari.stop()
        await budi.stop()
