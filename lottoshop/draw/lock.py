"""Process-local lock that keeps one settlement per slot running at a time."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from datetime import date
from typing import Callable, Iterator

logger = logging.getLogger(__name__)


class DrawLock:
    """Thread-safe map of ``key -> acquired_at`` with expiring entries.

    An entry older than ``timeout_seconds`` is treated as abandoned and may
    be taken over. The database unique constraint stays the durable guard;
    this lock only spares concurrent triggers the work of a doomed run.
    """

    def __init__(
        self, timeout_seconds: float = 60, clock: Callable[[], float] = time.monotonic
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._timeout = timeout_seconds
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._mutex = threading.Lock()

    @staticmethod
    def key_for(draw_date: date, draw_slot: str) -> str:
        return f"{draw_date.isoformat()}_{draw_slot}"

    def acquire(self, key: str) -> bool:
        """Take ``key``; return ``False`` while an unexpired holder exists."""

        now = self._clock()
        with self._mutex:
            acquired_at = self._entries.get(key)
            if acquired_at is not None:
                if now - acquired_at < self._timeout:
                    return False
                logger.warning(f"Draw lock {key} expired after {now - acquired_at:.1f}s, taking over")
            self._entries[key] = now
            return True

    def release(self, key: str) -> None:
        with self._mutex:
            self._entries.pop(key, None)

    def is_locked(self, key: str) -> bool:
        now = self._clock()
        with self._mutex:
            acquired_at = self._entries.get(key)
            return acquired_at is not None and now - acquired_at < self._timeout

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """Context manager form: yields whether ``key`` was acquired."""

        acquired = self.acquire(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)


__all__ = ["DrawLock"]
