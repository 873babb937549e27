"""
Worker pool for the upload pipeline.

Each worker owns a transfer client and a status slot, pulls one file at a
time from the work queue, takes the file lock and runs the per-file
pipeline. Failures stay local to the file: the worker logs, counts and
moves on.
"""

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import FileProcessingError, FileVanishedError
from domains.file_ingest.locks import FileLockRegistry
from domains.file_ingest.processors.pipeline import FileProcessor, ProcessResult
from domains.file_ingest.work_queue import FileReference, WorkQueue


@dataclass
class WorkerStatus:
    """Liveness record written only by the owning worker."""

    id: int
    running: bool = False


class Worker:
    """A single consumer of the work queue."""

    def __init__(
        self,
        worker_id: int,
        context: PipelineContext,
        queue: WorkQueue,
        locks: FileLockRegistry,
        processor: FileProcessor,
        uploader_factory: Callable,
        status: WorkerStatus,
    ):
        self.id = worker_id
        self.context = context
        self.queue = queue
        self.locks = locks
        self.processor = processor
        self.uploader_factory = uploader_factory
        self.status = status
        self.metrics = context.metrics
        self.log = context.for_component(f"worker-{worker_id}")

    def run(self):
        self.log.info(f"Worker {self.id} started")
        self.status.running = True

        # One client per worker, never shared
        try:
            uploader = self.uploader_factory()
        except Exception as e:
            self.status.running = False
            self.log.error(f"Worker {self.id}: Failed to initialize sender client: {e}")
            self.log.error(f"Worker {self.id} failed, exiting")
            return

        try:
            while True:
                ref = self.queue.receive(cancel=self.context.cancel)
                if ref is None:
                    break

                if self.context.is_sentinel(ref.path):
                    self.log.info(f"Worker {self.id}: got exit trigger file {ref.path!r}")
                    self.context.cancel.trigger(f"exit trigger file {ref.path}")
                    break

                self.handle(ref, uploader)
        finally:
            self.status.running = False
            try:
                uploader.close()
            except Exception as e:
                self.log.error(f"Worker {self.id}: Error closing sender client: {e}")
            self.log.info(f"Worker {self.id} exiting")

    def handle(self, ref: FileReference, uploader) -> Optional[ProcessResult]:
        """
        Process one queue entry under the file lock.

        Returns:
            ProcessResult on delivery, None if skipped or failed
        """
        with self.locks.hold(ref.path) as acquired:
            if not acquired:
                self.metrics.inc("files_skipped_total")
                self.log.debug(f"Worker {self.id}: {ref.path!r} is already in flight, skipping")
                return None

            self.log.info(f"Worker {self.id}: processing file {ref.path!r}")
            try:
                return self.processor.process(ref.path, uploader)
            except FileVanishedError as e:
                self.log.info(f"Worker {self.id}: {e} (already delivered?)")
            except FileProcessingError as e:
                self.log.error(f"Worker {self.id}: {e}")
            except Exception as e:
                self.metrics.inc("uploads_errors_total")
                self.log.error(f"Worker {self.id}: unexpected error processing {ref.path!r}: {e}")
            return None


class WorkerPool:
    """Fixed-size set of worker threads sharing one queue and lock registry."""

    def __init__(
        self,
        context: PipelineContext,
        queue: WorkQueue,
        locks: FileLockRegistry,
        processor: FileProcessor,
        uploader_factory: Callable,
        size: Optional[int] = None,
    ):
        self.context = context
        self.queue = queue
        self.size = size if size is not None else context.settings.workers
        if self.size < 1:
            raise ValueError("Worker pool size must be >= 1")

        self.statuses: List[WorkerStatus] = [WorkerStatus(id=i) for i in range(self.size)]
        self.workers = [
            Worker(i, context, queue, locks, processor, uploader_factory, self.statuses[i])
            for i in range(self.size)
        ]
        self.threads: List[threading.Thread] = []

    def start(self):
        # Blocked receivers must re-check cancellation when it fires
        self.context.cancel.add_listener(lambda reason: self.queue.wake_all())

        for worker in self.workers:
            thread = threading.Thread(target=worker.run, name=f"worker-{worker.id}", daemon=True)
            thread.start()
            self.threads.append(thread)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every worker thread to exit.

        Returns:
            True if all workers have exited
        """
        for thread in self.threads:
            thread.join(timeout)
        return not any(thread.is_alive() for thread in self.threads)

    def all_running(self) -> bool:
        return all(status.running for status in self.statuses)

    def snapshot(self) -> List[WorkerStatus]:
        """Copy of the status slots for readers outside the pool."""
        return [WorkerStatus(id=s.id, running=s.running) for s in self.statuses]
