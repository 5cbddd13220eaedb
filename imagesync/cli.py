#!/usr/bin/env python3
"""imagesync command line entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys

from imagesync import __version__
from imagesync.commands import list_images, pull
from imagesync.core.config import load_config
from imagesync.core.errors import ImageSyncError
from imagesync.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagesync",
        description="Mirror the container images listed in a manifest",
    )
    parser.add_argument("--version", action="version", version=f"imagesync {__version__}")
    parser.add_argument(
        "-m",
        "--manifest",
        help="Path to the image manifest (default: IMAGESYNC_MANIFEST_PATH or .images.yaml)",
    )
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    parser.add_argument(
        "--log-format",
        choices=("console", "json"),
        help="Log output format (default: console)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    pull.register_parser(subparsers)
    list_images.register_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            MANIFEST_PATH=args.manifest,
            LOG_LEVEL=args.log_level,
            LOG_FORMAT=args.log_format,
            RUN_TIMEOUT_SECONDS=getattr(args, "timeout", None),
            MAX_WORKERS=getattr(args, "max_workers", None),
        )
    except ValueError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)

    try:
        return int(args.func(args, config))
    except (ImageSyncError, ValueError, FileNotFoundError) as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"Error: {args.command}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
