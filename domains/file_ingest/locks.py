"""
File lock registry.

Tracks which paths are in flight so that two workers never process the
same file at the same time. Scan mode rediscovers queued files on every
tick; this registry is where those duplicates are absorbed.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Set


class FileLockRegistry:
    """Set of in-flight paths with atomic insert-if-absent."""

    def __init__(self):
        self._lock = threading.Lock()
        self._paths: Set[str] = set()

    def acquire(self, path: str) -> bool:
        """
        Mark ``path`` as in flight.

        Returns:
            True if the caller now owns the path, False if another
            worker already holds it
        """
        with self._lock:
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def release(self, path: str):
        with self._lock:
            self._paths.discard(path)

    @contextmanager
    def hold(self, path: str) -> Iterator[bool]:
        """
        Context manager around acquire/release.

        Yields whether the lock was obtained; only an obtained lock is
        released on exit.
        """
        acquired = self.acquire(path)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(path)

    def is_locked(self, path: str) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
