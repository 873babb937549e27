"""
Transfer clients.

Each worker owns one uploader for its whole life. Three flavours:
- S3Uploader: real upload with boto3
- FakeUploader: stats and logs the artifact, used for dry runs
- CopyUploader: copies the artifact into a local directory, used for testing
"""

import shutil
from pathlib import Path

import boto3
from boto3.exceptions import Boto3Error
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from app.utils.config import Settings
from app.utils.helpers import format_bytes, join_key
from domains.file_ingest.errors import (
    FileVanishedError,
    TransferError,
    WorkerSetupError,
)


def _artifact_size(path: Path) -> int:
    """Size of the artifact about to be sent."""
    try:
        stats = path.stat()
    except FileNotFoundError as e:
        raise FileVanishedError(str(path), "file not found") from e
    except OSError as e:
        raise TransferError(str(path), f"cannot stat file: {e}") from e

    if not path.is_file():
        raise TransferError(str(path), "not a regular file")
    return stats.st_size


class S3Uploader:
    """Uploads artifacts to a single S3 bucket."""

    def __init__(self, bucket: str, timeout: float = 10.0, client=None):
        self.bucket = bucket
        if client is None:
            config = BotoConfig(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            )
            client = boto3.client("s3", config=config)
        self.client = client

    def upload(self, path: Path, destination_prefix: str) -> int:
        """
        Upload ``path`` as ``<destination_prefix>/<name>``.

        Returns:
            Number of bytes sent

        Raises:
            FileVanishedError: If the artifact no longer exists
            TransferError: If the upload fails
        """
        path = Path(path)
        size = _artifact_size(path)
        key = join_key(destination_prefix, path.name)

        try:
            self.client.upload_file(str(path), self.bucket, key)
        except (Boto3Error, BotoCoreError, ClientError) as e:
            raise TransferError(str(path), f"failed to upload file: {e}") from e

        logger.info(f"File uploaded to: s3://{self.bucket}/{key} ({format_bytes(size)})")
        return size

    def close(self):
        self.client.close()


class FakeUploader:
    """Pretends to upload: only checks the artifact and logs it."""

    def upload(self, path: Path, destination_prefix: str) -> int:
        path = Path(path)
        size = _artifact_size(path)
        logger.info(
            f"FAKE UPLOAD TO S3: {str(path)!r} file, size {format_bytes(size)}, "
            f"key {join_key(destination_prefix, path.name)!r}"
        )
        return size

    def close(self):
        pass


class CopyUploader:
    """Copies artifacts into a local directory instead of uploading them."""

    def __init__(self, target_dir: Path):
        self.target_dir = Path(target_dir)

    def upload(self, path: Path, destination_prefix: str) -> int:
        path = Path(path)
        size = _artifact_size(path)
        destination = self.target_dir / path.name

        try:
            self.target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, destination)
        except FileNotFoundError as e:
            raise FileVanishedError(str(path), "file not found") from e
        except OSError as e:
            raise TransferError(str(path), f"copy failed: {e}") from e

        logger.info(
            f"COPYING FILE: {str(path)!r} file, size {format_bytes(size)}, destination {str(destination)!r}"
        )
        return size

    def close(self):
        pass


def make_uploader(settings: Settings, client=None):
    """
    Create the transfer client selected by ``settings.upload_mode``.

    Raises:
        WorkerSetupError: If the client cannot be created
    """
    mode = settings.upload_mode
    try:
        if mode == "s3":
            return S3Uploader(settings.bucket_name, timeout=settings.send_timeout, client=client)
        if mode == "fake":
            return FakeUploader()
        if mode == "copy":
            return CopyUploader(settings.copy_dir)
    except (Boto3Error, BotoCoreError, ValueError) as e:
        raise WorkerSetupError(f"failed to initialize {mode} uploader: {e}") from e

    raise WorkerSetupError(f"unknown upload mode {mode!r}")
