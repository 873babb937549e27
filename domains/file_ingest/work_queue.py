"""
Bounded work queue between the directory producer and the workers.

Sends never block: a full queue rejects the item and the producer counts
it as a saturation event. The file is still on disk, so the next scan or
filesystem event rediscovers it.
"""

import os
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from domains.file_ingest.errors import QueueClosedError


@dataclass(frozen=True)
class FileReference:
    """One unit of work: a file found in the watched directory."""

    path: str

    def __post_init__(self):
        if not self.path:
            raise ValueError("FileReference path must not be empty")

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


class WorkQueue:
    """Fixed-capacity FIFO shared by one producer and many workers."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Queue capacity must be >= 1")
        self.capacity = capacity
        self._items: Deque[FileReference] = deque()
        self._cond = threading.Condition()
        self._closed = False

    def send(self, item: FileReference) -> bool:
        """
        Try to enqueue ``item`` without blocking.

        Returns:
            True if accepted, False if the queue is at capacity

        Raises:
            QueueClosedError: If the queue has been closed
        """
        with self._cond:
            if self._closed:
                raise QueueClosedError("work queue is closed")
            if len(self._items) >= self.capacity:
                return False
            self._items.append(item)
            self._cond.notify()
            return True

    def receive(self, cancel=None, timeout: Optional[float] = None) -> Optional[FileReference]:
        """
        Take the next item, blocking until one is available.

        Args:
            cancel: Optional CancellationSignal; once set, returns None
            timeout: Optional maximum wait in seconds

        Returns:
            The next FileReference, or None when there is no more work
            (queue closed and drained, cancelled, or timed out)
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    return None
                if self._items:
                    return self._items.popleft()
                if self._closed:
                    return None

                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                self._cond.wait(remaining)

    def wake_all(self):
        """Wake every blocked receiver so it can re-check cancellation."""
        with self._cond:
            self._cond.notify_all()

    def close(self) -> bool:
        """
        Stop accepting items. Buffered items are still handed out.

        Returns:
            True on the first call, False if already closed
        """
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._cond.notify_all()
            return True

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)
