"""Cross-process file locking for on-disk state."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from pathlib import Path

from filelock import FileLock, Timeout


class LockTimeout(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""


@contextlib.contextmanager
def file_lock(target: Path, timeout: float = 10) -> Generator[None, None, None]:
    """Hold an exclusive lock on ``<target>.lock`` for the duration of the block.

    Two clients sharing one cache file (e.g. a ``watch`` process and a CLI
    mutation) serialize their writes through this.

    Raises:
        LockTimeout: If the lock cannot be acquired within *timeout* seconds.
    """
    lock_path = target.with_name(target.name + ".lock")
    lock = FileLock(lock_path, timeout=timeout)
    try:
        lock.acquire()
    except Timeout:
        raise LockTimeout(f"Could not acquire lock on '{target.name}' within {timeout}s") from None
    try:
        yield
    finally:
        lock.release()
