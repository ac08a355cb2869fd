"""Tests for the pull race guard, driven by a fake clock."""

from __future__ import annotations

import pytest

from albumsync.sync.guard import VETO_BUSY, VETO_PUSH_IN_FLIGHT, VETO_QUIET_PERIOD, SyncSession


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def session(clock: FakeClock) -> SyncSession:
    return SyncSession("Sari", quiet_period=3.0, clock=clock)


class TestPullVeto:
    def test_fresh_session_allows_pull(self, session) -> None:
        assert session.pull_veto() is None

    def test_push_in_flight(self, session) -> None:
        with session.pushing():
            assert session.pull_veto() == VETO_PUSH_IN_FLIGHT

    def test_pending_pushes(self, session) -> None:
        session.pending_pushes = 1
        assert session.pull_veto() == VETO_PUSH_IN_FLIGHT

    def test_quiet_period_after_push(self, session, clock) -> None:
        with session.pushing():
            pass
        assert session.last_write_at == clock.now
        clock.advance(2.9)
        assert session.pull_veto() == VETO_QUIET_PERIOD
        clock.advance(0.2)
        assert session.pull_veto() is None

    def test_failed_push_still_starts_quiet_period(self, session) -> None:
        with pytest.raises(RuntimeError):
            with session.pushing():
                raise RuntimeError("network down")
        assert session.push_in_flight is False
        assert session.pull_veto() == VETO_QUIET_PERIOD

    def test_busy(self, session) -> None:
        with session.working():
            assert session.busy is True
            assert session.pull_veto() == VETO_BUSY
        assert session.busy is False
        assert session.pull_veto() is None

    def test_nested_work(self, session) -> None:
        with session.working():
            with session.working():
                pass
            assert session.pull_veto() == VETO_BUSY

    def test_in_flight_reported_before_busy(self, session) -> None:
        with session.working(), session.pushing():
            assert session.pull_veto() == VETO_PUSH_IN_FLIGHT

    def test_zero_quiet_period(self, clock) -> None:
        session = SyncSession(quiet_period=0, clock=clock)
        with session.pushing():
            pass
        assert session.pull_veto() is None


def test_negative_quiet_period_rejected() -> None:
    with pytest.raises(ValueError):
        SyncSession(quiet_period=-1)
