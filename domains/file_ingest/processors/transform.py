"""
File transforms applied before upload.

Both transforms shell out to the standard command-line tools (tar, gpg)
so that uploaded artifacts can be unpacked with the same tools. Each one
is an identity transform when disabled.
"""

import subprocess
from pathlib import Path
from typing import Optional

from loguru import logger

from domains.file_ingest.errors import TransformError


COMPRESSED_SUFFIX = ".tgz"
ENCRYPTED_SUFFIX = ".gpg"


class Compressor:
    """Packs a single file into ``<gzip_dir>/<name>.tgz``."""

    def __init__(self, enabled: bool, output_dir: Path, timeout: Optional[float] = None):
        self.enabled = enabled
        self.output_dir = Path(output_dir)
        self.timeout = timeout

    def artifact_path(self, original: Path) -> Path:
        return self.output_dir / (original.name + COMPRESSED_SUFFIX)

    def compress(self, original: Path) -> Path:
        """
        Compress ``original`` with tar+gzip.

        Args:
            original: File found in the watched directory

        Returns:
            Path of the compressed artifact, or ``original`` when disabled

        Raises:
            TransformError: If tar fails or cannot be run
        """
        original = Path(original)
        if not self.enabled:
            return original

        target = self.artifact_path(original)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target.unlink(missing_ok=True)

        try:
            result = subprocess.run(
                ["tar", "czf", str(target), "-C", str(original.parent), original.name],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise TransformError(str(original), f"error executing tgz CLI command: {e}") from e

        if result.returncode != 0:
            target.unlink(missing_ok=True)
            raise TransformError(
                str(original),
                f"error executing tgz CLI command: exit code {result.returncode}: {result.stderr.strip()}",
            )

        logger.debug(f"Compressed {original} -> {target}")
        return target


class Encryptor:
    """Symmetric gpg encryption into ``<encrypt_dir>/<input name>.gpg``."""

    def __init__(
        self,
        enabled: bool,
        output_dir: Path,
        passphrase: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.enabled = enabled
        self.output_dir = Path(output_dir)
        self.passphrase = passphrase
        self.timeout = timeout

    def artifact_path(self, source: Path) -> Path:
        return self.output_dir / (Path(source).name + ENCRYPTED_SUFFIX)

    def encrypt(self, source: Path, original_name: str) -> Path:
        """
        Encrypt ``source`` with ``gpg -c``.

        Args:
            source: Original file or its compressed artifact
            original_name: Base name of the file found in the watched directory

        Returns:
            Path of the encrypted artifact, or ``source`` when disabled

        Raises:
            TransformError: If gpg fails without producing output
        """
        source = Path(source)
        if not self.enabled:
            return source

        if not self.passphrase:
            raise TransformError(original_name, "encryption passphrase is not configured")

        target = self.artifact_path(source)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        # Only output written by this run may count as success below
        target.unlink(missing_ok=True)

        try:
            result = subprocess.run(
                [
                    "gpg", "-c", "--batch", "--yes",
                    "--passphrase", self.passphrase,
                    "-o", str(target), str(source),
                ],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise TransformError(original_name, f"error executing gpg CLI command: {e}") from e

        if result.returncode != 0:
            # gpg -c can exit with code 2 on warnings even though it wrote the file
            if target.exists() and target.stat().st_size > 0:
                logger.debug(f"gpg exited with {result.returncode} but produced {target}")
                return target
            target.unlink(missing_ok=True)
            raise TransformError(
                original_name,
                f"error executing gpg CLI command: exit code {result.returncode}: {result.stderr.strip()}",
            )

        logger.debug(f"Encrypted {source} -> {target}")
        return target
