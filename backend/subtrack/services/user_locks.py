"""Per-user mutual exclusion for operations that rewrite a user's subscriptions."""

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator


class _UserLock:
    """A user's lock plus the number of threads holding or waiting on it."""

    def __init__(self):
        self.lock = Lock()
        self.holders = 0


_REGISTRY_LOCK = Lock()
_USER_LOCKS: Dict[str, _UserLock] = {}


def is_locked(user_id: str) -> bool:
    """Whether some thread currently holds the user's lock."""
    with _REGISTRY_LOCK:
        entry = _USER_LOCKS.get(user_id)
        return entry is not None and entry.lock.locked()


def registered_users() -> int:
    """Number of users with a lock entry (held or waited on)."""
    with _REGISTRY_LOCK:
        return len(_USER_LOCKS)


@contextmanager
def user_lock(user_id: str) -> Iterator[None]:
    """
    Hold the user's lock for the duration of the block.

    Entries are created on first use and removed when the last holder or
    waiter leaves, so the registry only holds users with work in flight.
    """
    with _REGISTRY_LOCK:
        entry = _USER_LOCKS.get(user_id)
        if entry is None:
            entry = _USER_LOCKS[user_id] = _UserLock()
        entry.holders += 1

    try:
        with entry.lock:
            yield
    finally:
        with _REGISTRY_LOCK:
            entry.holders -= 1
            if entry.holders == 0:
                del _USER_LOCKS[user_id]
