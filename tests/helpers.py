import threading
import time
from pathlib import Path

from domains.file_ingest.errors import TransferError


class RecordingUploader:
    """Stand-in transfer client that remembers what it was asked to send."""

    def __init__(self, delay: float = 0.0, fail_names=()):
        self.delay = delay
        self.fail_names = set(fail_names)
        self.uploaded: list[tuple[str, str]] = []
        self.closed = False
        self._lock = threading.Lock()

    def upload(self, path, destination_prefix):
        path = Path(path)
        if self.delay:
            time.sleep(self.delay)
        if path.name in self.fail_names:
            raise TransferError(str(path), "simulated upload failure")
        size = path.stat().st_size
        with self._lock:
            self.uploaded.append((str(path), destination_prefix))
        return size

    @property
    def names(self) -> list[str]:
        return [Path(path).name for path, _ in self.uploaded]

    def close(self):
        self.closed = True


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
