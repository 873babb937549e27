"""Shared publishing logic for directory producers."""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from app.utils.helpers import normalise_path
from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import QueueClosedError
from domains.file_ingest.work_queue import FileReference, WorkQueue


class DirectoryProducer(ABC):
    """
    Base class for the scanner and the watcher.

    Subclasses discover paths and hand them to ``publish``, which owns
    the sentinel check and the non-blocking enqueue.
    """

    component = "producer"

    def __init__(self, context: PipelineContext, queue: WorkQueue, root: Optional[Path] = None):
        self.context = context
        self.queue = queue
        self.metrics = context.metrics
        self.root = normalise_path(Path(root or context.settings.path_to_watch))
        self.log = context.for_component(self.component)
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self):
        self._stopped.set()

    def publish(self, path) -> bool:
        """
        Offer one discovered path to the work queue.

        Returns:
            True if the path was queued
        """
        path = str(path)
        if self.stopped:
            return False

        if self.context.is_sentinel(path):
            self.log.info(f"Found exit trigger file {path!r}, shutting down")
            self.context.cancel.trigger(f"exit trigger file {path}")
            self.stop()
            return False

        try:
            accepted = self.queue.send(FileReference(path))
        except QueueClosedError:
            self.log.debug(f"Work queue closed, not queuing {path}")
            self.stop()
            return False

        if not accepted:
            self.metrics.inc("runtime_channel_full_events")
            self.log.warning(f"Work queue is full ({self.queue.capacity}), dropping {path}")
            return False

        self.log.debug(f"Queued {path}")
        return True

    @abstractmethod
    def run(self):
        """Discover files until stopped or cancelled."""
