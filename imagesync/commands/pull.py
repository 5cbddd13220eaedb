"""CLI parser and runner for pulling manifest images."""

from __future__ import annotations

import argparse
import json
from typing import Iterable

from imagesync.core.auth import DockerConfigAuthProvider
from imagesync.core.config import ORIGINS, PullRequest, SyncConfig
from imagesync.core.desired_state import build_desired_state
from imagesync.core.engine import Reconciler
from imagesync.core.registry_client import DockerRegistryClient


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "pull",
        help="Pull the images in the manifest",
        description=(
            "Pull every manifest image that is missing locally. All missing images are "
            "validated against their registry before the first pull starts."
        ),
    )
    parser.add_argument(
        "origin",
        nargs="?",
        default="source",
        type=str.lower,
        choices=ORIGINS,
        help="Which side of each manifest entry to pull from (default: source)",
    )
    parser.add_argument(
        "-i",
        "--images",
        action="append",
        default=[],
        metavar="IMAGE",
        help=(
            "Image to pull instead of the manifest contents, e.g. host.com/repo:v1.0.0 "
            "(repeatable, comma separated values accepted)"
        ),
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Run-wide deadline in seconds (default: IMAGESYNC_RUN_TIMEOUT_SECONDS or 1800)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        help="Registry operations to run concurrently within a phase (default: 1)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the work set and print it without pulling",
    )
    parser.add_argument(
        "--output",
        choices=("text", "json"),
        default="text",
        help="Print a machine readable run summary with 'json'",
    )
    parser.set_defaults(func=run)


def split_images(values: Iterable[str]) -> tuple[str, ...]:
    images: list[str] = []
    for value in values:
        for item in value.split(","):
            item = item.strip()
            if item:
                images.append(item)
    return tuple(images)


def run(args: argparse.Namespace, config: SyncConfig) -> int:
    request = PullRequest(
        origin=args.origin,
        images=split_images(args.images or []),
        manifest_path=config.MANIFEST_PATH,
    )
    provider = DockerConfigAuthProvider(config.DOCKER_CONFIG)
    desired = build_desired_state(request, provider)

    client = DockerRegistryClient(timeout=config.DOCKER_HOST_TIMEOUT)
    reconciler = Reconciler(
        client,
        timeout_seconds=config.RUN_TIMEOUT_SECONDS,
        max_workers=config.MAX_WORKERS,
        dry_run=bool(args.dry_run),
    )
    outcome = reconciler.run(desired, origin=request.origin)

    if args.output == "json":
        print(json.dumps(outcome.to_dict(), indent=2))
    return 0
