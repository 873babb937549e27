"""Exception hierarchy for the upload pipeline."""


class UploaderError(Exception):
    """Base class for all uploader errors."""


class ConfigurationError(UploaderError):
    """Settings are missing or invalid; raised before the pipeline starts."""


class ProducerSetupError(UploaderError):
    """The directory producer cannot read or watch its input directory."""


class WorkerSetupError(UploaderError):
    """A worker could not initialize its transfer client."""


class QueueClosedError(UploaderError):
    """An item was sent to a work queue after it was closed."""


class FileProcessingError(UploaderError):
    """A single file failed; it stays in place and is retried on rediscovery."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class FileVanishedError(FileProcessingError):
    """The file disappeared before processing, usually already uploaded."""


class TransformError(FileProcessingError):
    """Compression or encryption failed."""


class TransferError(FileProcessingError):
    """Upload to the remote store failed."""


class CleanupError(UploaderError):
    """Local artifacts could not be deleted after a successful upload."""

    def __init__(self, failures: dict):
        paths = ", ".join(str(p) for p in failures)
        super().__init__(f"failed to delete {len(failures)} artifact(s): {paths}")
        self.failures = failures
