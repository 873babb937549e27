"""
Configuration management for the S3 File Uploader.

Uses pydantic-settings to load configuration from environment variables
and .env files.
"""

import os
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.helpers import parse_s3_url, validate_url


VERSION = "0.0.1"
MIN_PUSH_INTERVAL = 10.0


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Worker Configuration
    workers: int = 1
    queue_size: int = 1024

    # API Configuration
    listen_host: str = "0.0.0.0"
    listen_port: int = 8765
    log_level: str = "INFO"
    verbose: bool = False
    version: str = VERSION

    # Directory Watching
    path_to_watch: Path = Path("/app/data")
    watch_mode: Literal["watch", "scan"] = "scan"
    scan_interval: float = 10.0  # seconds
    exit_on_filename: str = ""

    # Transform Configuration
    gzip: bool = False
    gzip_dir: Path = Path("/app/gzip")
    encrypt: bool = False
    encrypt_dir: Path = Path("/app/enc")
    gpg_password_env: str = "GPG_PASSWORD"

    # Transfer Configuration
    s3_bucket: str = ""
    s3_path: str = ""
    send_timeout: float = 10.0  # seconds
    upload_mode: str = "s3"  # s3, fake or copy
    copy_dir: Path = Path("/var/tmp")

    # Prometheus Pushgateway (optional)
    push_gateway: str = ""
    push_interval: float = 15.0  # seconds

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def bucket_name(self) -> str:
        """Bucket part of the s3 URL."""
        bucket, _ = parse_s3_url(self.s3_bucket)
        return bucket

    @property
    def destination_prefix(self) -> str:
        """Key prefix for uploaded objects, s3_path wins over the URL path."""
        if self.s3_path:
            return self.s3_path.strip("/")
        _, prefix = parse_s3_url(self.s3_bucket)
        return prefix.strip("/")

    def get_gpg_password(self) -> Optional[str]:
        """Read the encryption passphrase from the configured env var."""
        return os.environ.get(self.gpg_password_env) or None

    def validate_runtime(self) -> list[str]:
        """
        Check settings that must hold before the pipeline starts.

        Returns:
            List of problems, empty when the configuration is usable
        """
        problems = []

        if self.upload_mode not in ("s3", "fake", "copy"):
            problems.append(f"unknown upload mode {self.upload_mode!r}")

        if not self.s3_bucket:
            problems.append("s3 bucket is not specified")
        else:
            try:
                validate_url(self.s3_bucket)
            except ValueError as e:
                problems.append(str(e))

        if self.push_interval < MIN_PUSH_INTERVAL:
            problems.append(f"push interval must be >= {MIN_PUSH_INTERVAL:g} seconds")

        if self.workers < 1:
            problems.append("number of workers must be >= 1")

        if self.queue_size < 1:
            problems.append("queue size must be >= 1")

        if self.scan_interval <= 0:
            problems.append("scan interval must be positive")

        if self.encrypt and not self.get_gpg_password():
            problems.append(f"encryption enabled but ${self.gpg_password_env} is empty")

        return problems
