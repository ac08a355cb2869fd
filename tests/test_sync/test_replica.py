"""Tests for the local replica."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from albumsync.core.albums import create_album
from albumsync.core.models import new_album
from albumsync.storage.cache import SnapshotCache
from albumsync.sync.replica import LocalReplica


def _add(name: str, album_id: str):
    return lambda s: create_album(s, new_album(name, album_id=album_id, now=1))


class TestApply:
    def test_change_visible_immediately(self) -> None:
        replica = LocalReplica()
        result = replica.apply(_add("Pesta", "a1"))
        assert [a["id"] for a in result] == ["a1"]
        assert [a["id"] for a in replica.snapshot] == ["a1"]
        assert len(replica) == 1

    def test_snapshot_is_a_copy(self) -> None:
        replica = LocalReplica([new_album("Pesta", album_id="a1", now=1)])
        replica.snapshot[0]["name"] = "changed"
        assert replica.snapshot[0]["name"] == "Pesta"

    def test_failing_mutation_leaves_replica_alone(self) -> None:
        replica = LocalReplica([new_album("Pesta", album_id="a1", now=1)])

        def half_done(snapshot):
            snapshot[0]["name"] = "half"
            raise ValueError("boom")

        with pytest.raises(ValueError):
            replica.apply(half_done)
        assert replica.snapshot[0]["name"] == "Pesta"

    def test_mutation_must_return_list(self) -> None:
        replica = LocalReplica()
        with pytest.raises(TypeError, match="snapshot list"):
            replica.apply(lambda s: None)


class TestReplace:
    def test_replace_discards_local_state(self) -> None:
        replica = LocalReplica([new_album("Local", album_id="a1", now=1)])
        replica.replace([new_album("Remote", album_id="b1", now=2)])
        assert [a["id"] for a in replica.snapshot] == ["b1"]

    def test_replace_with_empty(self) -> None:
        replica = LocalReplica([new_album("Local", album_id="a1", now=1)])
        replica.replace([])
        assert replica.snapshot == []


class TestListeners:
    def test_origin_reported(self) -> None:
        seen: list[tuple[int, str]] = []
        replica = LocalReplica()
        replica.add_listener(lambda snap, origin: seen.append((len(snap), origin)))

        replica.apply(_add("A", "a1"))
        replica.replace([])
        assert seen == [(1, "local"), (0, "remote")]

    def test_failing_listener_does_not_break_writes(self, caplog: pytest.LogCaptureFixture) -> None:
        replica = LocalReplica()
        calls: list[str] = []

        def bad(snap, origin):
            raise RuntimeError("render failed")

        replica.add_listener(bad)
        replica.add_listener(lambda snap, origin: calls.append(origin))
        with caplog.at_level(logging.ERROR, logger="albumsync.sync.replica"):
            replica.apply(_add("A", "a1"))

        assert calls == ["local"]
        assert len(replica) == 1
        assert "listener" in caplog.text

    def test_remove_listener(self) -> None:
        calls: list[str] = []
        replica = LocalReplica()

        def fn(snap, origin):
            calls.append(origin)

        replica.add_listener(fn)
        replica.remove_listener(fn)
        replica.remove_listener(fn)
        replica.replace([])
        assert calls == []


class TestCacheMirror:
    def test_every_change_is_cached(self, tmp_path: Path) -> None:
        cache = SnapshotCache(tmp_path / "snapshot.json")
        replica = LocalReplica(cache=cache)
        replica.apply(_add("A", "a1"))
        assert [a["id"] for a in cache.load()] == ["a1"]
        replica.replace([])
        assert cache.load() == []

    def test_from_cache_seeds_snapshot(self, tmp_path: Path) -> None:
        cache = SnapshotCache(tmp_path / "snapshot.json")
        cache.save([new_album("Cached", album_id="c1", now=1)])
        replica = LocalReplica.from_cache(cache)
        assert replica.snapshot[0]["name"] == "Cached"

    def test_from_missing_cache_is_empty(self, tmp_path: Path) -> None:
        replica = LocalReplica.from_cache(SnapshotCache(tmp_path / "snapshot.json"))
        assert replica.snapshot == []

    def test_cache_write_failure_is_logged(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        cache = SnapshotCache(tmp_path / "snapshot.json")

        def broken(snapshot):
            raise OSError("read-only file system")

        monkeypatch.setattr(cache, "save", broken)
        replica = LocalReplica(cache=cache)
        with caplog.at_level(logging.WARNING, logger="albumsync.sync.replica"):
            replica.apply(_add("A", "a1"))
        assert len(replica) == 1
        assert "Could not write snapshot cache" in caplog.text
