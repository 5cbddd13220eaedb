"""
Registry credential resolution.

Encoded authorizations use the Docker Engine X-Registry-Auth format, so they
can be handed to the daemon unchanged. An empty string means anonymous.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

import docker.auth
import docker.errors

from imagesync.core.errors import AuthResolutionError

logger = logging.getLogger(__name__)

DOCKER_CONFIG_FILE = "config.json"


class AuthorizationProvider(Protocol):
    def encoded_auth_for_host(self, host: str) -> str: ...


def encode_credentials(username: str, password: str, server: str) -> str:
    header = docker.auth.encode_header(
        {"username": username, "password": password, "serveraddress": server}
    )
    return header.decode("ascii")


def decode_auth_header(encoded: str) -> dict[str, Any] | None:
    if not encoded:
        return None
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ValueError(f"malformed encoded authorization: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("encoded authorization must decode to a mapping")
    return payload or None


def credentials_from_env(username_var: str, password_var: str, server: str) -> str:
    username = os.environ.get(username_var)
    password = os.environ.get(password_var)
    missing = [
        name for name, value in ((username_var, username), (password_var, password)) if not value
    ]
    if missing:
        raise AuthResolutionError(server, f"environment variable(s) not set: {', '.join(missing)}")
    return encode_credentials(username, password, server)


def default_docker_config_dir() -> Path:
    env_dir = os.environ.get("DOCKER_CONFIG")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".docker"


class DockerConfigAuthProvider:
    """Resolves credentials from the Docker CLI config (auths, credsStore, credHelpers)."""

    def __init__(self, config_dir: Path | str | None = None):
        self.config_dir = Path(config_dir) if config_dir else default_docker_config_dir()
        self._auth_config: docker.auth.AuthConfig | None = None

    @property
    def config_path(self) -> Path:
        return self.config_dir / DOCKER_CONFIG_FILE

    def encoded_auth_for_host(self, host: str) -> str:
        auth_config = self._load(host)
        try:
            resolved = auth_config.resolve_authconfig(host)
        except docker.errors.DockerException as exc:
            raise AuthResolutionError(host, exc) from exc

        if not resolved:
            logger.debug("No credentials configured for %s; using anonymous access", host)
            return ""

        return docker.auth.encode_header(dict(resolved)).decode("ascii")

    def _load(self, host: str) -> docker.auth.AuthConfig:
        if self._auth_config is not None:
            return self._auth_config

        path = self.config_path
        if not path.is_file():
            logger.debug("Docker config not found at %s", path)
            self._auth_config = docker.auth.AuthConfig({})
            return self._auth_config

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise AuthResolutionError(host, f"load config {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise AuthResolutionError(host, f"load config {path}: document must be a mapping")

        if not payload:
            self._auth_config = docker.auth.AuthConfig({})
            return self._auth_config

        try:
            self._auth_config = docker.auth.load_config(config_dict=payload)
        except docker.errors.DockerException as exc:
            raise AuthResolutionError(host, f"load config {path}: {exc}") from exc
        return self._auth_config
