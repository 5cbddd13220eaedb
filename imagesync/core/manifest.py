"""Image manifest parsing and rendering helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from imagesync.core.auth import AuthorizationProvider, credentials_from_env
from imagesync.core.errors import ManifestError
from imagesync.core.reference import DEFAULT_REGISTRY_HOST

DEFAULT_MANIFEST_PATH = ".images.yaml"
DEFAULT_TAG = "latest"


@dataclass(frozen=True)
class RegistryAuth:
    """Names of the environment variables holding registry credentials."""

    username: str
    password: str


@dataclass(frozen=True)
class Target:
    host: str
    repository: str = ""
    auth: RegistryAuth | None = None

    def encoded_auth(self, provider: AuthorizationProvider) -> str:
        return _encoded_auth(self.host, self.auth, provider)


@dataclass(frozen=True)
class Source:
    repository: str
    host: str = DEFAULT_REGISTRY_HOST
    tag: str | None = None
    digest: str | None = None
    auth: RegistryAuth | None = None

    def _suffix(self) -> str:
        if self.digest:
            return f"@{self.digest}"
        return f":{self.tag or DEFAULT_TAG}"

    def image(self) -> str:
        return f"{self.host}/{self.repository}{self._suffix()}"

    def target_image(self, target: Target) -> str:
        parts = [target.host]
        if target.repository:
            parts.append(target.repository.strip("/"))
        parts.append(self.repository)
        return "/".join(parts) + self._suffix()

    def encoded_auth(self, provider: AuthorizationProvider) -> str:
        return _encoded_auth(self.host, self.auth, provider)


@dataclass(frozen=True)
class ImageManifest:
    path: Path
    target: Target
    sources: tuple[Source, ...]

    def images(self, origin: str) -> list[str]:
        if origin.lower() == "target":
            return [source.target_image(self.target) for source in self.sources]
        return [source.image() for source in self.sources]


def load_manifest(path: Path | str) -> ImageManifest:
    manifest_path = Path(path).resolve()
    if not manifest_path.is_file():
        raise FileNotFoundError(f"image manifest not found: {manifest_path}")

    try:
        payload = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ManifestError(f"image manifest is not valid YAML: {manifest_path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ManifestError(f"image manifest must be a mapping: {manifest_path}")

    target_raw = payload.get("target")
    if not isinstance(target_raw, dict):
        raise ManifestError(f"target must be a mapping in manifest: {manifest_path}")
    target = Target(
        host=_require_non_empty(target_raw, "host", manifest_path, "target"),
        repository=str(target_raw.get("repository") or "").strip(),
        auth=_parse_auth(target_raw.get("auth"), manifest_path, "target"),
    )

    sources_raw = payload.get("sources")
    if sources_raw is None:
        sources_raw = []
    if not isinstance(sources_raw, list):
        raise ManifestError(f"sources[] must be a list: {manifest_path}")

    sources: list[Source] = []
    for index, raw_entry in enumerate(sources_raw):
        where = f"sources[{index}]"
        if not isinstance(raw_entry, dict):
            raise ManifestError(f"{where} must be a mapping in manifest: {manifest_path}")
        tag = str(raw_entry.get("tag") or "").strip() or None
        digest = str(raw_entry.get("digest") or "").strip() or None
        if tag and digest:
            raise ManifestError(f"{where} must set tag or digest, not both: {manifest_path}")
        sources.append(
            Source(
                repository=_require_non_empty(raw_entry, "repository", manifest_path, where),
                host=str(raw_entry.get("host") or "").strip() or DEFAULT_REGISTRY_HOST,
                tag=tag,
                digest=digest,
                auth=_parse_auth(raw_entry.get("auth"), manifest_path, where),
            )
        )

    return ImageManifest(path=manifest_path, target=target, sources=tuple(sources))


def _encoded_auth(
    host: str,
    auth: RegistryAuth | None,
    provider: AuthorizationProvider,
) -> str:
    if auth is not None:
        return credentials_from_env(auth.username, auth.password, host)
    return provider.encoded_auth_for_host(host)


def _parse_auth(raw: Any, manifest_path: Path, where: str) -> RegistryAuth | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ManifestError(f"{where}.auth must be a mapping if present: {manifest_path}")
    return RegistryAuth(
        username=_require_non_empty(raw, "username", manifest_path, f"{where}.auth"),
        password=_require_non_empty(raw, "password", manifest_path, f"{where}.auth"),
    )


def _require_non_empty(
    payload: dict[str, Any],
    key: str,
    manifest_path: Path,
    where: str,
) -> str:
    value = str(payload.get(key) or "").strip()
    if value:
        return value
    raise ManifestError(f"{where}.{key} is required: {manifest_path}")
