"""
Periodic directory scanner.

Lists the watched directory on every tick and publishes every regular
file it finds, including files that are already queued or in flight.
Duplicates are dropped later by the file lock registry.
"""

import os
from pathlib import Path
from typing import List, Optional

from domains.file_ingest.collectors.base import DirectoryProducer
from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import ProducerSetupError
from domains.file_ingest.work_queue import WorkQueue


class DirectoryScanner(DirectoryProducer):
    """Scan-mode producer."""

    component = "scanner"

    def __init__(
        self,
        context: PipelineContext,
        queue: WorkQueue,
        root: Optional[Path] = None,
        interval: Optional[float] = None,
    ):
        super().__init__(context, queue, root)
        self.interval = interval if interval is not None else context.settings.scan_interval

    def list_files(self) -> List[Path]:
        """
        List regular files directly inside the watched directory.

        Returns:
            Paths sorted by name

        Raises:
            ProducerSetupError: If the directory cannot be read
        """
        try:
            with os.scandir(self.root) as entries:
                found = []
                for entry in entries:
                    try:
                        if entry.is_file():
                            found.append(Path(entry.path))
                    except OSError:
                        # Vanished between listing and stat
                        continue
        except OSError as e:
            raise ProducerSetupError(f"Cannot read directory {str(self.root)!r}: {e}") from e

        return sorted(found, key=lambda p: p.name)

    def scan_once(self) -> int:
        """
        Run one scan.

        Returns:
            Number of files accepted by the queue
        """
        accepted = 0
        for path in self.list_files():
            if self.stopped:
                break
            if self.publish(path):
                accepted += 1
        return accepted

    def run(self):
        """Scan immediately, then every interval until cancelled."""
        self.log.info(f"Directory scanner started for {str(self.root)!r}, interval {self.interval}s")

        self.scan_once()
        while not self.stopped and not self.context.cancel.wait(self.interval):
            self.scan_once()

        self.log.info("Directory scanner exiting")
