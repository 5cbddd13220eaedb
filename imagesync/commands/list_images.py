"""CLI parser for listing the images a manifest describes."""

from __future__ import annotations

import argparse

from imagesync.core.config import ORIGINS, SyncConfig
from imagesync.core.manifest import load_manifest


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "list",
        help="List the images in the manifest",
    )
    parser.add_argument(
        "origin",
        nargs="?",
        default="source",
        type=str.lower,
        choices=ORIGINS,
        help="Which side of each manifest entry to list (default: source)",
    )
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, config: SyncConfig) -> int:
    manifest = load_manifest(config.MANIFEST_PATH)
    for image in manifest.images(args.origin):
        print(image)
    return 0
