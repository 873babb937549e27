"""
Per-file processing: compress -> encrypt -> upload -> cleanup.

Stages run strictly in order and stop at the first failure. A failed file
is left in the watched directory so that the next scan or filesystem
event picks it up again, and its intermediate artifacts are removed. Once
the upload succeeds the file counts as delivered; cleanup problems are
reported separately and never undo the success counters.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from app.utils.helpers import format_bytes, format_duration
from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import (
    CleanupError,
    FileProcessingError,
    FileVanishedError,
    TransformError,
)
from domains.file_ingest.processors.transform import Compressor, Encryptor


@dataclass
class ProcessResult:
    """Outcome of one successful delivery."""

    path: str
    final_path: str
    original_bytes: int
    sent_bytes: int
    duration: float
    artifacts: List[Path] = field(default_factory=list)
    cleanup_error: Optional[CleanupError] = None


class FileProcessor:
    """Runs the transform, transfer and cleanup stages for one file at a time."""

    def __init__(self, context: PipelineContext, compressor: Compressor, encryptor: Encryptor):
        self.context = context
        self.metrics = context.metrics
        self.compressor = compressor
        self.encryptor = encryptor
        self.destination_prefix = context.settings.destination_prefix
        self.log = context.for_component("processor")

    @classmethod
    def from_context(cls, context: PipelineContext) -> "FileProcessor":
        settings = context.settings
        compressor = Compressor(settings.gzip, settings.gzip_dir)
        encryptor = Encryptor(
            settings.encrypt,
            settings.encrypt_dir,
            passphrase=settings.get_gpg_password(),
        )
        return cls(context, compressor, encryptor)

    def process(self, path: str, uploader) -> ProcessResult:
        """
        Deliver a single file.

        Args:
            path: File found in the watched directory
            uploader: The calling worker's transfer client

        Returns:
            ProcessResult describing the delivery

        Raises:
            FileProcessingError: If any stage before cleanup fails
        """
        self.metrics.inc("uploads_total")
        try:
            result = self._transform_and_send(Path(path), uploader)
        except FileProcessingError:
            self.metrics.inc("uploads_errors_total")
            raise

        self.metrics.inc("uploads_success_total")
        self.metrics.inc("files_bytes_sum", result.original_bytes)
        self.metrics.inc("uploads_bytes_sum", result.sent_bytes)
        self.metrics.observe_duration(result.duration)

        self.log.success(
            f"Delivered {path}: {format_bytes(result.original_bytes)} original, "
            f"{format_bytes(result.sent_bytes)} sent in {format_duration(result.duration)}"
        )

        try:
            self.cleanup(result.artifacts)
        except CleanupError as e:
            self.metrics.inc("cleanup_errors_total", len(e.failures))
            self.log.error(f"Cleanup after upload of {path} failed: {e}")
            result.cleanup_error = e

        return result

    def _transform_and_send(self, original: Path, uploader) -> ProcessResult:
        try:
            original_bytes = original.stat().st_size
        except FileNotFoundError as e:
            raise FileVanishedError(str(original), "file not found") from e
        except OSError as e:
            raise TransformError(str(original), f"cannot stat file: {e}") from e

        artifacts = [original]

        try:
            compressed = self.compressor.compress(original)
            if compressed != original:
                artifacts.append(compressed)

            final = self.encryptor.encrypt(compressed, original.name)
            if final != compressed:
                artifacts.append(final)

            started = time.monotonic()
            sent_bytes = uploader.upload(final, self.destination_prefix)
            duration = time.monotonic() - started
        except Exception:
            # The original stays for the next attempt, intermediates do not
            self._discard(artifacts[1:])
            raise

        return ProcessResult(
            path=str(original),
            final_path=str(final),
            original_bytes=original_bytes,
            sent_bytes=sent_bytes,
            duration=duration,
            artifacts=artifacts,
        )

    def cleanup(self, artifacts: List[Path]):
        """
        Delete the original file and every intermediate artifact.

        Each artifact is attempted independently; an artifact that is
        already gone is not a failure.

        Raises:
            CleanupError: Listing every artifact that could not be deleted
        """
        failures: Dict[Path, OSError] = {}

        for artifact in artifacts:
            try:
                Path(artifact).unlink()
            except FileNotFoundError:
                self.log.debug(f"Artifact already removed: {artifact}")
            except OSError as e:
                self.log.error(f"Failed to delete {artifact}: {e}")
                failures[Path(artifact)] = e

        if failures:
            raise CleanupError(failures)

    def _discard(self, intermediates: List[Path]):
        """Best-effort removal of intermediates left by a failed attempt."""
        for artifact in intermediates:
            try:
                Path(artifact).unlink(missing_ok=True)
            except OSError as e:
                self.log.warning(f"Could not remove intermediate {artifact}: {e}")
