"""
Registry client backed by the Docker Engine API.

Implements the three operations the reconciliation engine sequences:
local presence, remote probe with credentials, and a blocking pull.
Every daemon call is bounded by the run deadline, not only by the
per-request socket timeout.
"""

from __future__ import annotations

import logging
import queue
import threading
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Protocol, TypeVar

import docker
import docker.errors
import requests.exceptions

from imagesync.core.auth import decode_auth_header
from imagesync.core.deadline import Deadline
from imagesync.core.errors import (
    DeadlineExceededError,
    ImageNotFoundError,
    RegistryUnauthorizedError,
    RegistryUnavailableError,
    TransferError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNAUTHORIZED_MARKERS = ("unauthorized", "denied", "authentication required", "forbidden")

_LINE = "line"
_DONE = "done"
_FAILED = "failed"


@dataclass(frozen=True)
class RemoteImage:
    image: str
    digest: str | None = None
    platforms: tuple[str, ...] = field(default_factory=tuple)


class RegistryClient(Protocol):
    def exists_locally(self, image: str, *, deadline: Deadline) -> bool: ...

    def exists_remotely(self, image: str, auth: str, *, deadline: Deadline) -> RemoteImage: ...

    def transfer(self, image: str, auth: str, *, deadline: Deadline) -> None: ...


class DockerRegistryClient:
    """
    RegistryClient on top of docker-py.

    exists_locally must not mutate daemon state. transfer is idempotent since
    pulling an image that is already complete is a no-op for the daemon.
    """

    def __init__(self, client: docker.DockerClient | None = None, *, timeout: float = 120.0):
        if client is None:
            try:
                client = docker.from_env(timeout=int(max(timeout, 1)))
            except docker.errors.DockerException as exc:
                raise RegistryUnavailableError(f"connect to docker daemon: {exc}") from exc
        self.client = client

    def exists_locally(self, image: str, *, deadline: Deadline) -> bool:
        phase = "local existence check"
        deadline.check(phase)
        try:
            call_with_deadline(lambda: self.client.images.get(image), deadline, phase)
            return True
        except docker.errors.NotFound:
            return False
        except (docker.errors.DockerException, requests.exceptions.RequestException) as exc:
            if deadline.expired():
                raise DeadlineExceededError(phase, deadline.seconds) from exc
            raise RegistryUnavailableError(f"query docker daemon: {exc}") from exc

    def exists_remotely(self, image: str, auth: str, *, deadline: Deadline) -> RemoteImage:
        phase = "remote validation"
        deadline.check(phase)
        try:
            auth_config = decode_auth_header(auth)
        except ValueError as exc:
            raise RegistryUnauthorizedError(f"unusable credentials for {image}: {exc}") from exc

        try:
            payload = call_with_deadline(
                lambda: self.client.api.inspect_distribution(image, auth_config=auth_config),
                deadline,
                phase,
            )
        except docker.errors.NotFound as exc:
            raise ImageNotFoundError(f"image not found at remote: {_explain(exc)}") from exc
        except docker.errors.APIError as exc:
            raise _classify_api_error(exc) from exc
        except (docker.errors.DockerException, requests.exceptions.RequestException) as exc:
            if deadline.expired():
                raise DeadlineExceededError(phase, deadline.seconds) from exc
            raise RegistryUnavailableError(f"inspect distribution: {exc}") from exc

        return _remote_image(image, payload)

    def transfer(self, image: str, auth: str, *, deadline: Deadline) -> None:
        phase = "transfer"
        deadline.check(phase)
        try:
            auth_config = decode_auth_header(auth)
        except ValueError as exc:
            raise TransferError(image, f"unusable credentials: {exc}") from exc

        def open_stream() -> Iterable[dict[str, Any]]:
            return self.client.api.pull(image, stream=True, decode=True, auth_config=auth_config)

        try:
            with closing(stream_with_deadline(open_stream, deadline, phase)) as lines:
                for line in lines:
                    if "error" in line:
                        detail = line.get("errorDetail", {}).get("message") or line["error"]
                        raise TransferError(image, detail)
                    status = line.get("status")
                    if status and "id" not in line:
                        logger.debug("%s: %s", image, status, extra={"image": image})
                    deadline.check(phase)
        except (docker.errors.DockerException, requests.exceptions.RequestException) as exc:
            if deadline.expired():
                raise DeadlineExceededError(phase, deadline.seconds) from exc
            raise TransferError(image, _explain(exc)) from exc


def call_with_deadline(fn: Callable[[], T], deadline: Deadline, phase: str) -> T:
    """
    Run a blocking daemon call on a worker thread and wait at most until the deadline.

    On expiry the worker is abandoned (it is a daemon thread) and
    DeadlineExceededError is raised. Exceptions from fn are re-raised here.
    """
    outcome: queue.Queue[tuple[str, Any]] = queue.Queue(maxsize=1)

    def target() -> None:
        try:
            outcome.put((_DONE, fn()))
        except BaseException as exc:
            outcome.put((_FAILED, exc))

    threading.Thread(target=target, name=f"imagesync-{phase}", daemon=True).start()
    try:
        kind, value = outcome.get(timeout=deadline.remaining())
    except queue.Empty:
        raise DeadlineExceededError(phase, deadline.seconds) from None
    if kind == _FAILED:
        raise value
    return value


def stream_with_deadline(
    open_stream: Callable[[], Iterable[T]], deadline: Deadline, phase: str
) -> Iterator[T]:
    """
    Yield items from a blocking stream, waiting at most until the deadline for each one.

    The stream is opened and read on a daemon thread. Closing this generator,
    or the deadline expiring, tells the reader to stop and close the stream.
    """
    items: queue.Queue[tuple[str, Any]] = queue.Queue()
    stop = threading.Event()

    def pump() -> None:
        stream = None
        try:
            stream = open_stream()
            for item in stream:
                if stop.is_set():
                    break
                items.put((_LINE, item))
        except BaseException as exc:
            items.put((_FAILED, exc))
        else:
            items.put((_DONE, None))
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    threading.Thread(target=pump, name=f"imagesync-{phase}", daemon=True).start()
    try:
        while True:
            try:
                kind, value = items.get(timeout=deadline.remaining())
            except queue.Empty:
                raise DeadlineExceededError(phase, deadline.seconds) from None
            if kind == _DONE:
                return
            if kind == _FAILED:
                raise value
            yield value
    finally:
        stop.set()


def _remote_image(image: str, payload: Any) -> RemoteImage:
    if not isinstance(payload, dict):
        return RemoteImage(image=image)
    descriptor = payload.get("Descriptor") or {}
    platforms: list[str] = []
    for platform in payload.get("Platforms") or []:
        os_name = platform.get("os") or platform.get("OS") or ""
        arch = platform.get("architecture") or platform.get("Architecture") or ""
        if os_name and arch:
            platforms.append(f"{os_name}/{arch}")
    return RemoteImage(image=image, digest=descriptor.get("digest"), platforms=tuple(platforms))


def _classify_api_error(exc: docker.errors.APIError) -> Exception:
    detail = _explain(exc)
    lowered = detail.lower()
    if exc.status_code in (401, 403) or any(marker in lowered for marker in _UNAUTHORIZED_MARKERS):
        return RegistryUnauthorizedError(f"registry rejected credentials: {detail}")
    if "manifest unknown" in lowered or "not found" in lowered:
        return ImageNotFoundError(f"image not found at remote: {detail}")
    return RegistryUnavailableError(f"inspect distribution: {detail}")


def _explain(exc: Exception) -> str:
    explanation = getattr(exc, "explanation", None)
    if explanation:
        return str(explanation)
    return str(exc)
