"""Execution deadline shared by the stages of one draw run."""

from __future__ import annotations

import time
from typing import Callable

from .errors import DrawTimeoutError


class Deadline:
    """Wall-clock budget shared by every stage of one draw run."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._seconds = seconds
        self._started = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    def expired(self) -> bool:
        return self.elapsed > self._seconds

    def check(self, stage: str) -> None:
        """Raise :class:`DrawTimeoutError` if the budget is spent."""
        if self.expired():
            raise DrawTimeoutError(
                f"Draw execution exceeded {self._seconds}s during {stage} "
                f"(elapsed {self.elapsed:.2f}s)"
            )
