"""Run-wide wall-clock budget shared by every phase."""

from __future__ import annotations

import time
from typing import Callable

from imagesync.core.errors import DeadlineExceededError


class Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        if seconds <= 0:
            raise ValueError(f"deadline must be positive: {seconds}")
        self.seconds = float(seconds)
        self._clock = clock
        self._expires_at = clock() + self.seconds

    def remaining(self) -> float:
        return max(self._expires_at - self._clock(), 0.0)

    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self, phase: str) -> None:
        if self.expired():
            raise DeadlineExceededError(phase, self.seconds)
