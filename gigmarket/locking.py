"""Per-key mutual exclusion.

Each job and its applications form one serializable unit. Operations that
read-then-write a job's status or its applications run inside
``locks.hold(job_id)``. Locks are re-entrant so that accepting an
application can fill the job while still holding the job's lock.
"""

import contextlib
import logging
import threading
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class LockTimeoutError(RuntimeError):
    """Raised when a keyed lock cannot be acquired within the timeout."""

    pass


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.RLock()
        self.holders = 0


class KeyedLockManager:
    """Hands out one re-entrant lock per key and drops it when unused."""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextlib.contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=self._timeout if self._timeout is not None else -1)
        if not acquired:
            self._release_entry(key, entry)
            logger.warning(f"Timed out waiting for lock on {key}")
            raise LockTimeoutError(f"Timed out waiting for lock on {key}")
        try:
            yield
        finally:
            entry.lock.release()
            self._release_entry(key, entry)

    def _release_entry(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)
