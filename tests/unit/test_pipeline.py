import shutil
import subprocess
import tarfile
from pathlib import Path

import pytest

from domains.file_ingest.errors import (
    CleanupError,
    FileVanishedError,
    TransferError,
    TransformError,
)
from domains.file_ingest.processors import transform
from domains.file_ingest.processors.pipeline import FileProcessor
from domains.file_ingest.processors.transform import Compressor, Encryptor

from tests.helpers import RecordingUploader


def make_processor(context, gzip=False, encrypt=False, passphrase="secret"):
    settings = context.settings
    return FileProcessor(
        context,
        Compressor(gzip, settings.gzip_dir),
        Encryptor(encrypt, settings.encrypt_dir, passphrase=passphrase),
    )


def fake_gpg(returncode=0, write_output=True):
    """subprocess.run replacement that behaves like ``gpg -c``."""

    def run(cmd, **kwargs):
        assert cmd[0] == "gpg"
        target = Path(cmd[cmd.index("-o") + 1])
        if write_output:
            target.write_bytes(b"encrypted:" + Path(cmd[-1]).read_bytes())
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="gpg: warning")

    return run


def test_plain_upload_deletes_original_and_counts(context, watch_dir):
    original = watch_dir / "report.csv"
    original.write_text("a,b,c\n")
    uploader = RecordingUploader()

    result = make_processor(context).process(str(original), uploader)

    assert uploader.uploaded == [(str(original), "backups")]
    assert not original.exists()
    assert result.original_bytes == 6
    assert result.sent_bytes == 6
    assert result.cleanup_error is None

    metrics = context.metrics
    assert metrics.value("uploads_total") == 1
    assert metrics.value("uploads_success_total") == 1
    assert metrics.value("uploads_errors_total") == 0
    assert metrics.value("files_bytes_sum") == 6
    assert metrics.value("uploads_bytes_sum") == 6
    assert metrics.snapshot()["uploads_hist_duration_seconds_count"] == 1


def test_vanished_file_is_reported(context, watch_dir):
    with pytest.raises(FileVanishedError):
        make_processor(context).process(str(watch_dir / "gone"), RecordingUploader())

    assert context.metrics.value("uploads_errors_total") == 1
    assert context.metrics.value("uploads_success_total") == 0


def test_failed_upload_leaves_file_in_place(context, watch_dir):
    original = watch_dir / "data.bin"
    original.write_bytes(b"12345")
    uploader = RecordingUploader(fail_names={"data.bin"})

    with pytest.raises(TransferError):
        make_processor(context).process(str(original), uploader)

    assert original.exists()
    assert context.metrics.value("uploads_total") == 1
    assert context.metrics.value("uploads_errors_total") == 1
    assert context.metrics.value("uploads_success_total") == 0


def test_cleanup_failure_keeps_success_counters(context, watch_dir, monkeypatch):
    original = watch_dir / "locked.bin"
    original.write_bytes(b"payload")
    real_unlink = Path.unlink

    def unlink(self, *args, **kwargs):
        if self.name == "locked.bin":
            raise PermissionError("read-only filesystem")
        return real_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", unlink)

    result = make_processor(context).process(str(original), RecordingUploader())

    assert isinstance(result.cleanup_error, CleanupError)
    assert context.metrics.value("uploads_success_total") == 1
    assert context.metrics.value("uploads_errors_total") == 0
    assert context.metrics.value("cleanup_errors_total") == 1


def test_cleanup_ignores_missing_artifacts(context, tmp_path):
    present = tmp_path / "present"
    present.write_text("x")

    make_processor(context).cleanup([tmp_path / "missing", present])

    assert not present.exists()


def test_cleanup_reports_every_failure(context, tmp_path):
    # Directories cannot be unlinked
    first = tmp_path / "dir-one"
    second = tmp_path / "dir-two"
    first.mkdir()
    second.mkdir()

    with pytest.raises(CleanupError) as excinfo:
        make_processor(context).cleanup([first, second])

    assert set(excinfo.value.failures) == {first, second}


@pytest.mark.skipif(shutil.which("tar") is None, reason="tar is required for compression tests")
def test_compressed_upload(context, watch_dir):
    original = watch_dir / "notes.txt"
    original.write_text("hello " * 100)
    sent = []

    class InspectingUploader(RecordingUploader):
        def upload(self, path, destination_prefix):
            with tarfile.open(path, "r:gz") as archive:
                sent.append(archive.getnames())
            return super().upload(path, destination_prefix)

    result = make_processor(context, gzip=True).process(str(original), InspectingUploader())

    assert Path(result.final_path).name == "notes.txt.tgz"
    assert Path(result.final_path).parent == context.settings.gzip_dir
    assert sent == [["notes.txt"]]
    assert not original.exists()
    assert not Path(result.final_path).exists()


def test_compression_failure_is_transform_error(context, watch_dir, monkeypatch):
    original = watch_dir / "notes.txt"
    original.write_text("hello")

    def failing_tar(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 2, stdout="", stderr="tar: broken")

    monkeypatch.setattr(transform.subprocess, "run", failing_tar)

    with pytest.raises(TransformError):
        make_processor(context, gzip=True).process(str(original), RecordingUploader())

    assert original.exists()
    assert context.metrics.value("uploads_errors_total") == 1


def test_encryption_names_artifact_after_input(context, watch_dir, monkeypatch):
    original = watch_dir / "secret.txt"
    original.write_text("classified")
    monkeypatch.setattr(transform.subprocess, "run", fake_gpg())
    uploader = RecordingUploader()

    result = make_processor(context, encrypt=True).process(str(original), uploader)

    assert Path(result.final_path).name == "secret.txt.gpg"
    assert uploader.names == ["secret.txt.gpg"]
    assert not Path(result.final_path).exists()


def test_gpg_nonzero_exit_with_output_is_success(context, watch_dir, monkeypatch):
    original = watch_dir / "secret.txt"
    original.write_text("classified")
    monkeypatch.setattr(transform.subprocess, "run", fake_gpg(returncode=2))

    result = make_processor(context, encrypt=True).process(str(original), RecordingUploader())

    assert result.cleanup_error is None
    assert context.metrics.value("uploads_success_total") == 1


def test_gpg_failure_without_output(context, watch_dir, monkeypatch):
    original = watch_dir / "secret.txt"
    original.write_text("classified")
    monkeypatch.setattr(transform.subprocess, "run", fake_gpg(returncode=2, write_output=False))

    with pytest.raises(TransformError):
        make_processor(context, encrypt=True).process(str(original), RecordingUploader())

    assert original.exists()


def test_encryption_without_passphrase_fails(context, watch_dir):
    original = watch_dir / "secret.txt"
    original.write_text("classified")

    with pytest.raises(TransformError):
        make_processor(context, encrypt=True, passphrase=None).process(str(original), RecordingUploader())



def test_stale_encrypted_artifact_is_never_uploaded(context, watch_dir, monkeypatch):
    original = watch_dir / "report.csv"
    original.write_text("version 2")
    stale = context.settings.encrypt_dir / "report.csv.gpg"
    stale.parent.mkdir(parents=True)
    stale.write_text("encrypted:version 1")
    monkeypatch.setattr(transform.subprocess, "run", fake_gpg(returncode=2, write_output=False))
    uploader = RecordingUploader()

    with pytest.raises(TransformError):
        make_processor(context, encrypt=True).process(str(original), uploader)

    assert uploader.uploaded == []
    assert original.read_text() == "version 2"
    assert not stale.exists()
    assert context.metrics.value("uploads_success_total") == 0


def test_failed_upload_removes_intermediates_but_keeps_original(context, watch_dir, monkeypatch):
    original = watch_dir / "secret.txt"
    original.write_text("classified")
    monkeypatch.setattr(transform.subprocess, "run", fake_gpg())
    uploader = RecordingUploader(fail_names={"secret.txt.gpg"})

    with pytest.raises(TransferError):
        make_processor(context, encrypt=True).process(str(original), uploader)

    assert original.exists()
    assert not (context.settings.encrypt_dir / "secret.txt.gpg").exists()


def test_failed_compression_leaves_no_partial_archive(context, watch_dir, monkeypatch):
    original = watch_dir / "notes.txt"
    original.write_text("hello")

    def partial_tar(cmd, **kwargs):
        Path(cmd[2]).write_bytes(b"truncated")
        return subprocess.CompletedProcess(cmd, 2, stdout="", stderr="tar: disk full")

    monkeypatch.setattr(transform.subprocess, "run", partial_tar)

    with pytest.raises(TransformError):
        make_processor(context, gzip=True).process(str(original), RecordingUploader())

    assert original.exists()
    assert not (context.settings.gzip_dir / "notes.txt.tgz").exists()
