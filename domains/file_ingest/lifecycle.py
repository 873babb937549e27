"""
Lifecycle controller for the upload pipeline.

Owns the queue, the lock registry, the producer and the worker pool, and
moves the pipeline through RUNNING -> DRAINING -> STOPPED:

- RUNNING until the cancellation signal fires (OS signal, exit trigger
  file seen by the producer or a worker, or a fatal producer error)
- DRAINING while the queue is closed and in-flight files finish
- STOPPED once the producer and every worker thread have exited
"""

import threading
import time
from enum import Enum
from typing import Callable, List, Optional

from app.utils.metrics import MetricsPusher
from domains.file_ingest.collectors import make_producer
from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import ProducerSetupError
from domains.file_ingest.locks import FileLockRegistry
from domains.file_ingest.processors.pipeline import FileProcessor
from domains.file_ingest.processors.transfer import make_uploader
from domains.file_ingest.work_queue import WorkQueue
from domains.file_ingest.workers import WorkerPool, WorkerStatus


METRICS_UPDATE_INTERVAL = 2.0


class LifecycleState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class LifecycleController:
    """Starts the pipeline and coordinates its orderly shutdown."""

    def __init__(
        self,
        context: PipelineContext,
        uploader_factory: Optional[Callable] = None,
        producer_factory: Callable = make_producer,
        processor: Optional[FileProcessor] = None,
    ):
        self.context = context
        self.settings = context.settings
        self.log = context.for_component("lifecycle")

        self.queue = WorkQueue(self.settings.queue_size)
        self.locks = FileLockRegistry()
        self.processor = processor or FileProcessor.from_context(context)
        self.producer = producer_factory(context, self.queue)
        self.pool = WorkerPool(
            context,
            self.queue,
            self.locks,
            self.processor,
            uploader_factory or (lambda: make_uploader(self.settings)),
        )

        self.state = LifecycleState.RUNNING
        self.fatal_error: Optional[Exception] = None
        self._signal_reason: Optional[str] = None
        self.started_at: Optional[float] = None
        self._state_lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._producer_thread: Optional[threading.Thread] = None

    def start(self):
        """Start workers, producer and metrics threads."""
        self.started_at = time.monotonic()
        self.context.cancel.add_listener(self._on_cancel)

        self.pool.start()

        self._producer_thread = self._spawn(self._run_producer, "producer")
        self._spawn(self._update_metrics, "metrics-updater")

        if self.settings.push_gateway:
            pusher = MetricsPusher(
                self.context.metrics,
                self.settings.push_gateway,
                self.settings.push_interval,
            )
            self._spawn(lambda: pusher.run(self.context.cancel), "metrics-pusher")

        self.log.info(f"Upload pipeline is running with {self.pool.size} worker(s)")

    def _spawn(self, target: Callable, name: str) -> threading.Thread:
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)
        return thread

    def _run_producer(self):
        try:
            self.producer.run()
        except ProducerSetupError as e:
            self.fatal_error = e
            self.log.error(f"Producer setup failed: {e}")
            self.context.cancel.trigger(f"producer setup failed: {e}")
        except Exception as e:
            self.fatal_error = e
            self.log.error(f"Producer crashed: {e}")
            self.context.cancel.trigger(f"producer crashed: {e}")

    def _update_metrics(self):
        # Refreshing every 2 seconds is frequent enough
        metrics = self.context.metrics
        while True:
            metrics.set_gauge("runtime_channel_length", len(self.queue))
            if self.context.cancel.wait(METRICS_UPDATE_INTERVAL):
                break

    def _on_cancel(self, reason: str):
        with self._state_lock:
            if self.state is LifecycleState.RUNNING:
                self.state = LifecycleState.DRAINING
        self.log.info(f"Draining pipeline: {reason}")
        self.producer.stop()
        self.queue.close()

    def request_shutdown(self, reason: str = "shutdown requested"):
        self.context.cancel.trigger(reason)

    def signal_shutdown(self, reason: str):
        """
        Shutdown request that is safe to call from a signal handler.

        Takes no locks and does no logging: it only records the reason,
        and ``wait`` triggers cancellation on its next poll.
        """
        self._signal_reason = reason

    def wait(self, poll: float = 1.0) -> int:
        """
        Block until the pipeline has fully stopped.

        Returns:
            Process exit code: 0 on clean drain, 1 after a fatal producer error
        """
        while not self.context.cancel.wait(poll):
            if self._signal_reason is not None:
                self.log.info(f"Shutting down: {self._signal_reason}")
                self.request_shutdown(self._signal_reason)

        if self._producer_thread is not None:
            self._producer_thread.join()
        self.pool.join()
        for thread in self._threads:
            thread.join()

        with self._state_lock:
            self.state = LifecycleState.STOPPED

        self.log.info("Upload pipeline stopped")
        return 1 if self.fatal_error else 0

    def run(self) -> int:
        """Start the pipeline and block until it stops."""
        self.start()
        return self.wait()

    @property
    def uptime(self) -> float:
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at

    def healthy(self) -> bool:
        return self.pool.all_running()

    def worker_statuses(self) -> List[WorkerStatus]:
        return self.pool.snapshot()
