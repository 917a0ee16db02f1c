"""Keyed, bounded-wait locks serializing units of work that share an entity."""

from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterable, Iterator

from ..errors import ConflictError
from ..logging_config import get_logger

logger = get_logger("locks")


def account_key(account_id: int) -> str:
    return f"account:{account_id}"


def transaction_key(transaction_id: int) -> str:
    return f"transaction:{transaction_id}"


def schedule_key(schedule_id: int) -> str:
    return f"schedule:{schedule_id}"


class _FairLock:
    """FIFO lock: waiters are granted the lock in arrival order."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._queue: Deque[object] = deque()
        self._held = False

    def acquire(self, timeout: float) -> bool:
        token = object()
        deadline = time.monotonic() + timeout
        with self._cond:
            self._queue.append(token)
            while self._held or self._queue[0] is not token:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._queue.remove(token)
                    # The head may have changed; let the next waiter re-check.
                    self._cond.notify_all()
                    return False
                self._cond.wait(remaining)
            self._queue.popleft()
            self._held = True
            return True

    def release(self) -> None:
        with self._cond:
            self._held = False
            self._cond.notify_all()


class LockRegistry:
    """Hands out one fair lock per key and acquires key sets deadlock-free.

    Keys are always taken in sorted order, and the whole set shares one deadline:
    if any key cannot be had in time, everything already taken is released and
    :class:`ConflictError` is raised.
    """

    def __init__(self, default_timeout: float = 5.0):
        self.default_timeout = default_timeout
        self._locks: Dict[str, _FairLock] = {}
        # Holders plus waiters per key; an entry is dropped when it reaches zero.
        self._users: Dict[str, int] = {}
        self._guard = threading.Lock()

    def active_keys(self) -> list[str]:
        """Keys currently held or waited on."""
        with self._guard:
            return sorted(self._locks)

    def _checkout(self, key: str) -> _FairLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = _FairLock()
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[str], timeout: float | None = None) -> Iterator[list[str]]:
        ordered = sorted(set(keys))
        wait = self.default_timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        checked_out: list[str] = []
        acquired: list[_FairLock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                if not lock.acquire(max(0.0, deadline - time.monotonic())):
                    logger.warning(
                        "Lock wait exceeded",
                        extra={"key": key, "keys": ordered, "timeout": wait},
                    )
                    raise ConflictError(
                        f"Timed out after {wait}s waiting for {key}", key=key
                    )
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)


__all__ = ["LockRegistry", "account_key", "schedule_key", "transaction_key"]
