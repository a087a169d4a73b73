"""Per-holding advisory locks serializing ledger mutations against replays."""

import threading
from contextlib import contextmanager
from typing import Iterator


class HoldingLockRegistry:
    """
    Hands out one re-entrant lock per holding id.

    Mutations hold the lock for validate-and-commit; replays hold it while
    reading the ledger, so an update never interleaves with a replay of the
    same holding. Locks for different holdings never contend.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, holding_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(holding_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[holding_id] = lock
            return lock

    @contextmanager
    def hold(self, holding_id: str) -> Iterator[None]:
        lock = self.lock_for(holding_id)
        with lock:
            yield

    def discard(self, holding_id: str) -> None:
        """Forget the lock of a deleted holding."""
        with self._guard:
            self._locks.pop(holding_id, None)


# Process-wide registry; services sharing a database must share locks
_holding_locks = HoldingLockRegistry()


def get_holding_locks() -> HoldingLockRegistry:
    """Return the process-wide lock registry."""
    return _holding_locks
