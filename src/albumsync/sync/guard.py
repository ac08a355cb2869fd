"""Race/staleness guard for background pulls.

A pull that started before our own push landed can return the document as
it was *before* that push; applying it would silently revert the user's
edit.  The guard does not prevent that at the server (nothing can, the store
has no locks); it just keeps this client from pulling while its own write
is in flight, for a short quiet period afterwards, and while a long local
operation such as a photo upload is running.

All of that state lives on a :class:`SyncSession` instead of module globals,
so it can be driven with a fake clock in tests.
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable, Generator

VETO_PUSH_IN_FLIGHT = "push in flight"
VETO_QUIET_PERIOD = "quiet period"
VETO_BUSY = "local operation in progress"


class SyncSession:
    """Per-client sync context: identity plus the race-guard state."""

    def __init__(
        self,
        author: str | None = None,
        *,
        quiet_period: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if quiet_period < 0:
            raise ValueError("quiet_period must be non-negative")
        self.author = author
        self.quiet_period = quiet_period
        self._clock = clock
        self.push_in_flight = False
        # Snapshots queued by the scheduler but not yet handed to push().
        self.pending_pushes = 0
        self.last_write_at: float | None = None
        self._busy = 0

    @property
    def busy(self) -> bool:
        return self._busy > 0

    @contextlib.contextmanager
    def pushing(self) -> Generator[None, None, None]:
        """Mark a push in flight for the duration of the block.

        ``last_write_at`` is stamped on exit whether the push succeeded or
        not: either way the local replica is the freshest state we know of.
        """
        self.push_in_flight = True
        try:
            yield
        finally:
            self.push_in_flight = False
            self.last_write_at = self._clock()

    @contextlib.contextmanager
    def working(self) -> Generator[None, None, None]:
        """Mark a long local operation (e.g. an upload batch) as running."""
        self._busy += 1
        try:
            yield
        finally:
            self._busy -= 1

    def pull_veto(self) -> str | None:
        """Return why a scheduled pull must be skipped, or ``None`` to allow it."""
        if self.push_in_flight or self.pending_pushes:
            return VETO_PUSH_IN_FLIGHT
        if self._busy:
            return VETO_BUSY
        if self.last_write_at is not None:
            if self._clock() - self.last_write_at < self.quiet_period:
                return VETO_QUIET_PERIOD
        return None
