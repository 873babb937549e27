"""
Helper utilities for the S3 File Uploader.

Common functions used across domains.
"""

from pathlib import Path
from typing import Tuple
from urllib.parse import urlparse


def validate_url(url: str) -> None:
    """
    Check that a URL has both a scheme and a host.

    Args:
        url: URL to check, e.g. ``s3://my-bucket/path``

    Raises:
        ValueError: If the scheme or host is missing
    """
    parsed = urlparse(url)

    if not parsed.scheme:
        raise ValueError(f"can't find scheme in URL {url!r}")

    if not parsed.netloc:
        raise ValueError(f"can't find host in URL {url!r}")


def parse_s3_url(url: str) -> Tuple[str, str]:
    """Split an s3 URL into bucket and key prefix."""
    parsed = urlparse(url)
    return parsed.netloc, parsed.path


def join_key(prefix: str, name: str) -> str:
    """Build an object key from a prefix and a file name."""
    prefix = prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


def format_bytes(bytes_count: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024.0:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.1f} PB"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as ns/µs/ms/s."""
    nanoseconds = seconds * 1e9

    if nanoseconds < 1000:
        return f"{nanoseconds:.2f}ns"

    for unit, divisor in (("µs", 1e3), ("ms", 1e6)):
        if nanoseconds < divisor * 1000:
            return f"{nanoseconds / divisor:.2f}{unit}"

    return f"{seconds:.2f}s"


def normalise_path(path: Path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""

    try:
        return path.expanduser().resolve()
    except FileNotFoundError:
        return path.expanduser().absolute()
