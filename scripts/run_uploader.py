#!/usr/bin/env python3
"""Watch a directory for new files and upload them to S3.

Files must be moved into the watched directory complete. Each one is
optionally packed with tar+gzip and encrypted with gpg, uploaded, and
then removed together with its intermediate artifacts. Settings come from
the environment (or ``.env``); command line flags override them.
"""

from __future__ import annotations

import argparse
import signal
import sys
import time
from typing import Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from app.main import create_app, serve_in_background, setup_logging
from app.utils.config import VERSION, Settings
from app.utils.helpers import format_duration
from domains.file_ingest.context import PipelineContext
from domains.file_ingest.errors import ConfigurationError
from domains.file_ingest.lifecycle import LifecycleController


def parse_listen(value: str) -> Tuple[str, int]:
    """Split ``host:port`` (host optional) into its parts."""
    host, _, port = value.rpartition(":")
    try:
        return host or "0.0.0.0", int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid listen address {value!r}") from None


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Watch a directory for new files and upload them to S3.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit.")
    parser.add_argument("--workers", type=int, help="The number of worker threads.")
    parser.add_argument(
        "--listen",
        type=parse_listen,
        help="Address:port to listen on for exposing metrics (default: :8765).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Log at DEBUG level.",
    )
    parser.add_argument("--s3-bucket", help="S3 bucket to upload to, e.g. s3://my-bucket.")
    parser.add_argument("--s3-path", help="Key prefix inside the bucket.")
    parser.add_argument("--path", dest="path_to_watch", help="Directory to watch for new files.")
    parser.add_argument(
        "--mode",
        dest="watch_mode",
        choices=["watch", "scan"],
        help="Discover files from filesystem events or periodic scans.",
    )
    parser.add_argument("--scan-interval", type=float, help="Seconds between directory scans.")
    parser.add_argument(
        "--exit-on-filename",
        help="Shut down gracefully when a file with this name shows up.",
    )
    parser.add_argument("--gzip", action="store_true", default=None, help="Pack files with tar+gzip.")
    parser.add_argument("--encrypt", action="store_true", default=None, help="Encrypt files with gpg.")
    parser.add_argument("--send-timeout", type=float, help="Upload request timeout in seconds.")
    parser.add_argument(
        "--upload-mode",
        choices=["s3", "fake", "copy"],
        help="Where to send files: real S3, log only, or copy to a local dir.",
    )
    parser.add_argument("--push-gateway", help="Prometheus Pushgateway URL.")
    parser.add_argument("--push-interval", type=float, help="Metrics push interval in seconds.")

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """
    Environment settings with command line overrides applied.

    Raises:
        ConfigurationError: If the settings cannot be parsed or are unusable
    """
    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None and key not in ("version", "listen")
    }
    if args.listen is not None:
        overrides["listen_host"], overrides["listen_port"] = args.listen

    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings: {e}") from e

    problems = settings.validate_runtime()
    if problems:
        raise ConfigurationError("; ".join(problems))
    return settings


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)

    if args.version:
        print(f"Version: {VERSION}")
        return 0

    try:
        settings = build_settings(args)
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging("DEBUG" if settings.verbose else settings.log_level)

    logger.info("Starting program")

    context = PipelineContext.from_settings(settings)
    controller = LifecycleController(context)

    server, server_thread = serve_in_background(
        create_app(controller), settings.listen_host, settings.listen_port
    )

    def _signal_handler(signum, frame):  # noqa: D401
        # Runs between bytecodes of the main thread: no locks, no logging
        controller.signal_shutdown(f"received signal {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    started = time.monotonic()
    try:
        exit_code = controller.run()
    finally:
        server.should_exit = True
        server_thread.join(timeout=5)

    logger.info(f"Upload is complete. Duration {format_duration(time.monotonic() - started)}")
    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
