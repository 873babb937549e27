"""
Filesystem watcher for the upload pipeline.

Uses the watchdog library for cross-platform file system event monitoring.

Only creation is acted upon. Files are expected to be moved into the
watched directory complete (``mv SRC DST``), never written in place,
because close-after-write cannot be observed reliably on every platform.
A rename whose destination is inside the watched directory counts as a
creation of the destination name.
"""

from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from app.utils.helpers import normalise_path
from domains.file_ingest.collectors.base import DirectoryProducer
from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import ProducerSetupError
from domains.file_ingest.work_queue import WorkQueue


class CreatedFileHandler(FileSystemEventHandler):
    """Forwards file creation events to a producer."""

    def __init__(self, producer: DirectoryProducer):
        """
        Initialize event handler.

        Args:
            producer: Producer that owns the work queue
        """
        super().__init__()
        self.producer = producer

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if event.is_directory:
            return

        self._handle(event.src_path, "create")

    def on_moved(self, event: FileSystemEvent):
        """Handle a rename into the watched directory."""
        if event.is_directory:
            return

        dest = getattr(event, "dest_path", None)
        if not dest:
            return

        if normalise_path(Path(dest)).parent != self.producer.root:
            return

        self._handle(dest, "move")

    def _handle(self, path: str, kind: str):
        # Runs on the observer thread: an error here must not kill it
        try:
            self.producer.log.info(f"Detected file: {path!r} ({kind})")
            self.producer.publish(path)
        except Exception as e:
            self.producer.log.error(f"Failed to handle {kind} event for {path!r}: {e}")


class DirectoryWatcher(DirectoryProducer):
    """Watch-mode producer built on a watchdog observer."""

    component = "watcher"

    def __init__(
        self,
        context: PipelineContext,
        queue: WorkQueue,
        root: Optional[Path] = None,
        observer_factory: Callable[[], Observer] = Observer,
        health_interval: float = 1.0,
    ):
        super().__init__(context, queue, root)
        self.observer_factory = observer_factory
        self.health_interval = health_interval
        self.handler = CreatedFileHandler(self)
        self.observer = None

    def start_observer(self):
        """
        Schedule and start the observer on the watched directory.

        Raises:
            ProducerSetupError: If the directory cannot be watched
        """
        if not self.root.is_dir():
            raise ProducerSetupError(f"Failed to watch {str(self.root)!r} path: not a directory")

        observer = self.observer_factory()
        try:
            observer.schedule(self.handler, str(self.root), recursive=False)
            observer.start()
        except OSError as e:
            raise ProducerSetupError(f"Failed to watch {str(self.root)!r} path: {e}") from e

        self.observer = observer
        self.log.info(f"Started watchdog observer for {str(self.root)!r} path")

    def stop_observer(self):
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None
        self.log.info("Filesystem observer stopped")

    def run(self):
        """Watch until cancelled or until the observer dies."""
        self.start_observer()

        try:
            while not self.stopped and not self.context.cancel.wait(self.health_interval):
                if not self.observer.is_alive():
                    self.log.error("Filesystem observer stopped unexpectedly, watcher exiting")
                    break
        finally:
            self.stop_observer()

        self.log.info("Directory watcher exiting")
