"""
Reconciliation engine.

A run is one forward pass: Built -> Filtered -> Validated -> Transferred ->
Reported. Images present locally are dropped before any remote call, every
remaining image is probed before the first transfer starts, and only transfer
failures are tolerated per image.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, TypeVar

from imagesync.core.deadline import Deadline
from imagesync.core.errors import (
    HostQueryError,
    RegistryError,
    RemoteValidationError,
    TransferError,
)
from imagesync.core.registry_client import RegistryClient, RemoteImage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Phase(str, Enum):
    BUILT = "built"
    FILTERED = "filtered"
    VALIDATED = "validated"
    TRANSFERRED = "transferred"
    REPORTED = "reported"


@dataclass(frozen=True)
class TransferResult:
    image: str
    ok: bool
    error: str | None = None
    seconds: float = 0.0


@dataclass
class RunOutcome:
    origin: str
    desired: int = 0
    present: list[str] = field(default_factory=list)
    work_set: list[str] = field(default_factory=list)
    digests: dict[str, str] = field(default_factory=dict)
    results: list[TransferResult] = field(default_factory=list)
    phase: Phase = Phase.BUILT
    dry_run: bool = False

    @property
    def succeeded(self) -> list[str]:
        return [result.image for result in self.results if result.ok]

    @property
    def failed(self) -> list[TransferResult]:
        return [result for result in self.results if not result.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.origin,
            "phase": self.phase.value,
            "dry_run": self.dry_run,
            "desired": self.desired,
            "present": list(self.present),
            "work_set": list(self.work_set),
            "digests": dict(self.digests),
            "results": [asdict(result) for result in self.results],
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
        }


class Reconciler:
    def __init__(
        self,
        client: RegistryClient,
        *,
        timeout_seconds: float,
        max_workers: int = 1,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.max_workers = max(int(max_workers), 1)
        self.dry_run = dry_run
        self._clock = clock

    def run(self, desired: Mapping[str, str], origin: str = "source") -> RunOutcome:
        deadline = Deadline(self.timeout_seconds, clock=self._clock)
        outcome = RunOutcome(origin=origin, desired=len(desired), dry_run=self.dry_run)

        if not desired:
            logger.info("No images found for %s registry", origin)
            self.report(outcome)
            return outcome

        logger.info("Finding images that need to be pulled from %s registry ...", origin)
        work_set = self.filter_present(desired, deadline)
        outcome.present = [image for image in desired if image not in work_set]
        outcome.work_set = list(work_set)
        outcome.phase = Phase.FILTERED

        remote = self.validate_remote(work_set, deadline)
        outcome.digests = {image: info.digest for image, info in remote.items() if info.digest}
        outcome.phase = Phase.VALIDATED

        if not self.dry_run:
            outcome.results = self.transfer_all(work_set, deadline)
            outcome.phase = Phase.TRANSFERRED

        self.report(outcome)
        return outcome

    def filter_present(self, desired: Mapping[str, str], deadline: Deadline) -> dict[str, str]:
        """Return the work set: desired images absent from the local store."""

        def exists(image: str) -> bool:
            deadline.check(Phase.FILTERED.value)
            try:
                return self.client.exists_locally(image, deadline=deadline)
            except RegistryError as exc:
                raise HostQueryError(image, exc) from exc

        presence = self._map(exists, list(desired))
        for image, found in presence.items():
            if found:
                logger.debug("Already present locally: %s", image, extra={"image": image})
        return {image: auth for image, auth in desired.items() if not presence[image]}

    def validate_remote(
        self, work_set: Mapping[str, str], deadline: Deadline
    ) -> dict[str, RemoteImage]:
        """Probe every image in the work set; the first failure aborts the run."""

        def probe(image: str) -> RemoteImage:
            deadline.check(Phase.VALIDATED.value)
            try:
                return self.client.exists_remotely(image, work_set[image], deadline=deadline)
            except RegistryError as exc:
                raise RemoteValidationError(image, exc) from exc

        return self._map(probe, list(work_set))

    def transfer_all(self, work_set: Mapping[str, str], deadline: Deadline) -> list[TransferResult]:
        def transfer(image: str) -> TransferResult:
            deadline.check(Phase.TRANSFERRED.value)
            logger.info("Pulling %s", image, extra={"image": image})
            started = self._clock()
            try:
                self.client.transfer(image, work_set[image], deadline=deadline)
            except (TransferError, RegistryError) as exc:
                logger.error("pull image and wait: %s", exc, extra={"image": image})
                return TransferResult(
                    image=image,
                    ok=False,
                    error=str(exc),
                    seconds=self._clock() - started,
                )
            return TransferResult(image=image, ok=True, seconds=self._clock() - started)

        return list(self._map(transfer, list(work_set)).values())

    def report(self, outcome: RunOutcome) -> None:
        outcome.phase = Phase.REPORTED
        if outcome.dry_run:
            for image in outcome.work_set:
                digest = outcome.digests.get(image)
                if digest:
                    logger.info("Would pull %s (%s)", image, digest, extra={"image": image})
                else:
                    logger.info("Would pull %s", image, extra={"image": image})
            logger.info(
                "Dry run: %d of %d images would be pulled from %s registry",
                len(outcome.work_set),
                outcome.desired,
                outcome.origin,
            )
            return

        failed = outcome.failed
        if failed:
            logger.warning(
                "%d of %d images failed to pull: %s",
                len(failed),
                len(outcome.work_set),
                ", ".join(result.image for result in failed),
            )
        logger.info(
            "All images have been pulled! (%d pulled, %d failed, %d already present)",
            len(outcome.succeeded),
            len(failed),
            len(outcome.present),
        )

    def _map(self, fn: Callable[[str], T], images: list[str]) -> dict[str, T]:
        """Apply fn to every image, in parallel when max_workers > 1. Keys keep input order."""
        if self.max_workers <= 1 or len(images) <= 1:
            return {image: fn(image) for image in images}

        results: dict[str, T] = {}
        workers = min(self.max_workers, len(images))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imagesync") as executor:
            futures: dict[Future[T], str] = {executor.submit(fn, image): image for image in images}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except BaseException:
                executor.shutdown(wait=True, cancel_futures=True)
                raise
        return {image: results[image] for image in images}
