"""Desired-state construction from an explicit image list or the manifest."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from imagesync.core.auth import AuthorizationProvider
from imagesync.core.config import PullRequest
from imagesync.core.errors import DuplicateImageError
from imagesync.core.manifest import ImageManifest, load_manifest
from imagesync.core.reference import parse_image_reference

logger = logging.getLogger(__name__)

DesiredState = dict[str, str]


def build_desired_state(
    request: PullRequest,
    provider: AuthorizationProvider,
    manifest_loader: Callable[[str], ImageManifest] = load_manifest,
) -> DesiredState:
    """
    Map each image reference to its encoded authorization.

    A non-empty explicit image list wins and the manifest is never read.
    Any credential failure aborts the build before a registry is contacted.
    """
    if request.images:
        return images_from_command_line(request.images, provider)
    manifest = manifest_loader(request.manifest_path)
    return images_from_manifest(manifest, request.origin, provider)


def images_from_command_line(
    images: Iterable[str],
    provider: AuthorizationProvider,
) -> DesiredState:
    entries: list[tuple[str, str]] = []
    for image in images:
        host = parse_image_reference(image).registry_host()
        entries.append((image.strip(), provider.encoded_auth_for_host(host)))
    return _collect(entries)


def images_from_manifest(
    manifest: ImageManifest,
    origin: str,
    provider: AuthorizationProvider,
) -> DesiredState:
    use_target = origin.lower() == "target"
    entries: list[tuple[str, str]] = []
    for source in manifest.sources:
        if use_target:
            image = source.target_image(manifest.target)
            auth = manifest.target.encoded_auth(provider)
        else:
            image = source.image()
            auth = source.encoded_auth(provider)
        entries.append((image, auth))
    return _collect(entries)


def _collect(entries: Iterable[tuple[str, str]]) -> DesiredState:
    desired: DesiredState = {}
    for image, auth in entries:
        existing = desired.get(image)
        if existing is None:
            desired[image] = auth
            continue
        if existing != auth:
            raise DuplicateImageError(image)
        logger.warning("Ignoring duplicate image entry: %s", image, extra={"image": image})
    return desired
