"""Content lock manager for serializing work on one (user, content item) pair"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from ...errors import ConcurrencyConflict

logger = logging.getLogger(__name__)

LockKey = tuple[str, str]


@dataclass
class LockInfo:
    """Information about a held content lock"""

    locked_at: datetime
    operation: str
    lock_id: str


class _KeyLock:
    def __init__(self):
        self.lock = threading.Lock()
        self.waiters = 0
        self.info: LockInfo | None = None


class ContentLockManager:
    """Manages per (user, content) locks so one interaction runs at a time per key"""

    def __init__(self, lock_timeout_seconds: float = 5.0):
        """
        Initialize the content lock manager

        Args:
            lock_timeout_seconds: Longest time to wait for a busy key
        """
        self._lock_timeout = lock_timeout_seconds
        self._registry_lock = threading.Lock()
        self._locks: dict[LockKey, _KeyLock] = {}

    def is_locked(self, user_id: str, content_key: str) -> bool:
        """Check if the key is currently held"""
        with self._registry_lock:
            entry = self._locks.get((user_id, content_key))
            return entry is not None and entry.info is not None

    def get_lock_info(self, user_id: str, content_key: str) -> LockInfo | None:
        with self._registry_lock:
            entry = self._locks.get((user_id, content_key))
            return entry.info if entry else None

    def acquire_lock(
        self,
        user_id: str,
        content_key: str,
        operation: str,
        timeout: float | None = None,
    ) -> bool:
        """
        Wait for the key and take it

        Args:
            user_id: Learner id
            content_key: Identifies the content item, e.g. "question:q1"
            operation: Name of operation being locked
            timeout: Seconds to wait, defaults to the manager timeout

        Returns:
            True if lock acquired, False if the wait timed out
        """
        key = (user_id, content_key)
        with self._registry_lock:
            entry = self._locks.setdefault(key, _KeyLock())
            entry.waiters += 1

        wait = self._lock_timeout if timeout is None else timeout
        acquired = entry.lock.acquire(timeout=wait)

        with self._registry_lock:
            if not acquired:
                entry.waiters -= 1
                self._discard_if_idle(key, entry)
                logger.warning(
                    f"Timed out after {wait}s waiting for lock on {key}, operation: {operation}"
                )
                return False
            now = datetime.now()
            entry.info = LockInfo(
                locked_at=now,
                operation=operation,
                lock_id=f"{user_id}_{content_key}_{operation}_{now.timestamp()}",
            )

        logger.debug(f"Acquired lock for {key}, operation: {operation}")
        return True

    def release_lock(self, user_id: str, content_key: str) -> bool:
        """
        Release the key

        Returns:
            True if lock was released, False if the key was not held
        """
        key = (user_id, content_key)
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None or entry.info is None:
                logger.warning(f"Attempted to release non-existent lock for {key}")
                return False
            info = entry.info
            entry.info = None
            entry.waiters -= 1
            entry.lock.release()
            self._discard_if_idle(key, entry)

        logger.debug(f"Released lock for {key}, operation: {info.operation}")
        return True

    @contextmanager
    def hold(self, user_id: str, content_key: str, operation: str):
        """
        Hold the key for the duration of the block

        Raises:
            ConcurrencyConflict: if the key stays busy past the timeout
        """
        if not self.acquire_lock(user_id, content_key, operation):
            raise ConcurrencyConflict(
                f"Another {operation} for user {user_id} on {content_key} is still running"
            )
        try:
            yield
        finally:
            self.release_lock(user_id, content_key)

    def get_active_locks_count(self) -> int:
        """Get number of currently held keys"""
        with self._registry_lock:
            return sum(1 for entry in self._locks.values() if entry.info is not None)

    def _discard_if_idle(self, key: LockKey, entry: _KeyLock) -> None:
        if entry.waiters == 0 and self._locks.get(key) is entry:
            del self._locks[key]
