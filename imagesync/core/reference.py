"""Image reference parsing helpers."""

from __future__ import annotations

from dataclasses import dataclass

import docker.auth
import docker.errors
from docker.utils import parse_repository_tag

from imagesync.core.errors import InvalidReferenceError

DEFAULT_REGISTRY_HOST = docker.auth.INDEX_NAME


@dataclass(frozen=True)
class ImageReference:
    host: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    def registry_host(self) -> str:
        return self.host

    def __str__(self) -> str:
        text = f"{self.host}/{self.repository}"
        if self.tag:
            text += f":{self.tag}"
        if self.digest:
            text += f"@{self.digest}"
        return text


def parse_image_reference(text: str) -> ImageReference:
    raw = text.strip()
    if raw == "":
        raise InvalidReferenceError(text, "reference is empty")

    digest: str | None = None
    name = raw
    if "@" in raw:
        name, digest = raw.rsplit("@", 1)
        if not digest.startswith("sha256:"):
            raise InvalidReferenceError(text, f"unsupported digest {digest!r}")

    # parse_repository_tag ignores a colon that belongs to a host:port prefix
    name, tag = parse_repository_tag(name)

    try:
        host, repository = docker.auth.resolve_repository_name(name)
    except docker.errors.InvalidRepository as exc:
        raise InvalidReferenceError(text, str(exc)) from exc

    if repository == "" or repository.endswith("/"):
        raise InvalidReferenceError(text, "repository path is empty")

    return ImageReference(host=host, repository=repository, tag=tag, digest=digest)
