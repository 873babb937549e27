"""
Shared pipeline context.

Every component receives a PipelineContext at construction instead of
reaching for module-level globals: it carries the settings, the
process-wide cancellation signal, the metrics sink and a bound logger.
"""

import os
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from loguru import logger as root_logger

from app.utils.config import Settings
from app.utils.metrics import Metrics


class CancellationSignal:
    """
    Broadcast shutdown signal.

    Once triggered it stays triggered. Listeners registered with
    ``add_listener`` are called exactly once, either at trigger time or
    immediately if they register late. Waiters block on ``wait``.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._listeners: List[Callable[[str], None]] = []
        self.reason: Optional[str] = None

    def trigger(self, reason: str) -> bool:
        """
        Fire the signal.

        Returns:
            True for the call that actually fired it, False afterwards
        """
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            listeners = list(self._listeners)
            self._listeners.clear()

        root_logger.info(f"Cancellation triggered: {reason}")
        for listener in listeners:
            self._notify(listener)
        return True

    def add_listener(self, listener: Callable[[str], None]):
        with self._lock:
            if not self._event.is_set():
                self._listeners.append(listener)
                return
        self._notify(listener)

    def _notify(self, listener: Callable[[str], None]):
        try:
            listener(self.reason)
        except Exception as e:
            root_logger.error(f"Cancellation listener {listener!r} failed: {e}")

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until triggered or timeout. Returns True if triggered."""
        return self._event.wait(timeout)


@dataclass
class PipelineContext:
    """Everything a pipeline component needs from its surroundings."""

    settings: Settings
    metrics: Metrics
    cancel: CancellationSignal = field(default_factory=CancellationSignal)
    logger: Any = root_logger

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineContext":
        metrics = Metrics(
            version=settings.version,
            channel_capacity=settings.queue_size,
            workers=settings.workers,
        )
        return cls(settings=settings, metrics=metrics)

    def for_component(self, component: str):
        """Logger bound to a component name."""
        return self.logger.bind(component=component)

    def is_sentinel(self, path: str) -> bool:
        """True if ``path`` names the configured exit trigger file."""
        sentinel = self.settings.exit_on_filename
        if not sentinel:
            return False
        return os.path.basename(path) == sentinel
