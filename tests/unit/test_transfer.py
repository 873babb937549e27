from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from domains.file_ingest.errors import FileVanishedError, TransferError, WorkerSetupError
from domains.file_ingest.processors.transfer import (
    CopyUploader,
    FakeUploader,
    S3Uploader,
    make_uploader,
)


def test_s3_uploader_builds_key_from_prefix(tmp_path):
    artifact = tmp_path / "dump.sql.gpg"
    artifact.write_bytes(b"x" * 10)
    client = MagicMock()

    uploader = S3Uploader("test-bucket", client=client)
    sent = uploader.upload(artifact, "backups/")

    assert sent == 10
    client.upload_file.assert_called_once_with(str(artifact), "test-bucket", "backups/dump.sql.gpg")


def test_s3_uploader_without_prefix_uses_bare_name(tmp_path):
    artifact = tmp_path / "dump.sql"
    artifact.write_bytes(b"x")
    client = MagicMock()

    S3Uploader("test-bucket", client=client).upload(artifact, "")

    client.upload_file.assert_called_once_with(str(artifact), "test-bucket", "dump.sql")


def test_s3_uploader_wraps_client_errors(tmp_path):
    artifact = tmp_path / "dump.sql"
    artifact.write_bytes(b"x")
    client = MagicMock()
    client.upload_file.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
    )

    with pytest.raises(TransferError) as excinfo:
        S3Uploader("test-bucket", client=client).upload(artifact, "")

    assert excinfo.value.path == str(artifact)


def test_s3_uploader_missing_artifact(tmp_path):
    client = MagicMock()

    with pytest.raises(FileVanishedError):
        S3Uploader("test-bucket", client=client).upload(tmp_path / "missing", "")

    client.upload_file.assert_not_called()


def test_s3_uploader_close_closes_client():
    client = MagicMock()
    S3Uploader("test-bucket", client=client).close()
    client.close.assert_called_once()


def test_fake_uploader_reports_size(tmp_path):
    artifact = tmp_path / "file.bin"
    artifact.write_bytes(b"12345")

    assert FakeUploader().upload(artifact, "prefix") == 5
    assert artifact.exists()


def test_copy_uploader_copies_into_target(tmp_path):
    artifact = tmp_path / "file.bin"
    artifact.write_bytes(b"12345")
    target = tmp_path / "copies"

    assert CopyUploader(target).upload(artifact, "ignored") == 5
    assert (target / "file.bin").read_bytes() == b"12345"


def test_make_uploader_modes(settings):
    assert isinstance(make_uploader(settings), FakeUploader)

    settings.upload_mode = "copy"
    uploader = make_uploader(settings)
    assert isinstance(uploader, CopyUploader)
    assert uploader.target_dir == settings.copy_dir

    settings.upload_mode = "s3"
    client = MagicMock()
    uploader = make_uploader(settings, client=client)
    assert isinstance(uploader, S3Uploader)
    assert uploader.bucket == "test-bucket"
    assert uploader.client is client


def test_make_uploader_unknown_mode(settings):
    settings.upload_mode = "ftp"

    with pytest.raises(WorkerSetupError):
        make_uploader(settings)
