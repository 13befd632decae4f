"""Keyed locks that linearize writes to a single order or creator ledger.

One ``KeyedLocks`` registry is built per resource type at process start and
passed to the services that need it. Acquisition is bounded by a timeout;
``retrying`` re-runs an operation a fixed number of times on contention before
giving up with ``PersistenceConflict``.
"""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

import structlog
from protean.exceptions import ExpectedVersionError

from merch.errors import PersistenceConflict

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class _KeyedLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    """A registry of re-entrant locks, one per key.

    Re-entrant so a caller already holding a key can call into a service
    that takes the same key. A key's lock is dropped once no thread holds or
    waits for it.
    """

    def __init__(self, name: str, timeout: float = 5.0) -> None:
        self.name = name
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[str, _KeyedLock] = {}

    def _checkout(self, key: str) -> _KeyedLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyedLock()
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _KeyedLock) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key``; raise ``PersistenceConflict`` on timeout."""
        key = str(key)
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.timeout):
                raise PersistenceConflict({self.name: [f"Timed out waiting for lock on {key}"]})
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


def retrying(operation: Callable[[], T], attempts: int = 3, what: str = "operation") -> T:
    """Run ``operation``, retrying on lock timeouts and version conflicts."""
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except (PersistenceConflict, ExpectedVersionError) as exc:
            last_error = exc
            logger.warning("Write contention, retrying", what=what, attempt=attempt, max_attempts=attempts)
    logger.error("Write contention did not clear", what=what, attempts=attempts)
    raise PersistenceConflict({what: [f"Gave up after {attempts} attempts: {last_error}"]})
