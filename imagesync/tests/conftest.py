from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pytest

from imagesync.core.deadline import Deadline
from imagesync.core.errors import AuthResolutionError
from imagesync.core.registry_client import RemoteImage


@dataclass
class FakeClock:
    now: float = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeRegistryClient:
    local: set[str] = field(default_factory=set)
    local_failure: Exception | None = None
    remote_failures: dict[str, Exception] = field(default_factory=dict)
    transfer_failures: dict[str, Exception] = field(default_factory=dict)
    clock: FakeClock | None = None
    transfer_seconds: float = 0.0

    def __post_init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.auths: dict[str, str] = {}

    def calls_for(self, operation: str) -> list[str]:
        return [image for name, image in self.calls if name == operation]

    def exists_locally(self, image: str, *, deadline: Deadline) -> bool:
        self.calls.append(("exists_locally", image))
        if self.local_failure is not None:
            raise self.local_failure
        return image in self.local

    def exists_remotely(self, image: str, auth: str, *, deadline: Deadline) -> RemoteImage:
        self.calls.append(("exists_remotely", image))
        self.auths[image] = auth
        if image in self.remote_failures:
            raise self.remote_failures[image]
        return RemoteImage(image=image, digest="sha256:" + "0" * 64)

    def transfer(self, image: str, auth: str, *, deadline: Deadline) -> None:
        self.calls.append(("transfer", image))
        if self.clock is not None:
            self.clock.advance(self.transfer_seconds)
        if image in self.transfer_failures:
            raise self.transfer_failures[image]
        self.local.add(image)


@dataclass
class FakeAuthProvider:
    auths: dict[str, str] = field(default_factory=dict)
    failing_hosts: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.requested: list[str] = []

    def encoded_auth_for_host(self, host: str) -> str:
        self.requested.append(host)
        if host in self.failing_hosts:
            raise AuthResolutionError(host, "credential helper failed")
        return self.auths.get(host, "")


MANIFEST_YAML = """
target:
  host: mirror.example.com
  repository: platform
sources:
  - repository: app
    host: registry.example.com
    tag: v1
  - repository: coreos/prometheus-operator
    host: quay.io
    tag: v0.40.0
""".strip()


@pytest.fixture
def fake_client() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def fake_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def manifest_file(tmp_path):
    path = tmp_path / ".images.yaml"
    path.write_text(MANIFEST_YAML + "\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _restore_logging():
    """setup_logging reconfigures global loggers; put them back after each test."""
    root = logging.getLogger()
    package = logging.getLogger("imagesync")
    saved = (
        list(root.handlers),
        root.level,
        list(package.handlers),
        package.level,
        package.propagate,
    )
    yield
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    package.handlers[:] = saved[2]
    package.setLevel(saved[3])
    package.propagate = saved[4]
