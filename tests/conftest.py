import pytest

from app.utils.config import Settings
from domains.file_ingest.context import PipelineContext


@pytest.fixture
def watch_dir(tmp_path):
    directory = tmp_path / "incoming"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(tmp_path, watch_dir, monkeypatch):
    monkeypatch.delenv("GPG_PASSWORD", raising=False)
    return Settings(
        path_to_watch=watch_dir,
        s3_bucket="s3://test-bucket/backups",
        upload_mode="fake",
        gzip_dir=tmp_path / "gzip",
        encrypt_dir=tmp_path / "enc",
        copy_dir=tmp_path / "copied",
        exit_on_filename="STOP",
        workers=1,
        queue_size=8,
        scan_interval=0.05,
    )


@pytest.fixture
def context(settings):
    return PipelineContext.from_settings(settings)
