"""
File Ingestion Collectors

Directory producers that discover files and feed the work queue:
- scanner.py - Periodic full listing of the watched directory
- watcher.py - watchdog-based creation events
"""

from domains.file_ingest.collectors.base import DirectoryProducer
from domains.file_ingest.collectors.scanner import DirectoryScanner
from domains.file_ingest.collectors.watcher import DirectoryWatcher


def make_producer(context, queue) -> DirectoryProducer:
    """Build the producer selected by ``settings.watch_mode``."""
    if context.settings.watch_mode == "watch":
        return DirectoryWatcher(context, queue)
    return DirectoryScanner(context, queue)


__all__ = ["DirectoryProducer", "DirectoryScanner", "DirectoryWatcher", "make_producer"]
