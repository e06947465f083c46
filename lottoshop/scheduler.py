"""Minute-granularity scheduler that settles each business slot automatically."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from .config import DrawSettings
from .draw.engine import DrawOutcome
from .workflows import run_auto_draw

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutoDrawScheduler:
    """Wake once a minute and settle the slot starting at that minute.

    The settlement itself is synchronous database work, so each tick runs it
    in a worker thread with :func:`asyncio.to_thread`; the event loop keeps
    serving HTTP requests meanwhile. A failing tick is logged and the loop
    carries on with the next minute.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory whose ``begin()`` opens the transaction for one settlement.
    settings : Optional[DrawSettings], default: None
        Draw settings; read from the environment when omitted.
    clock : Callable[[], datetime], default: UTC now
        Source of the current instant, replaceable in tests.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        settings: Optional[DrawSettings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or DrawSettings.from_env()
        self._clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._last_minute: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the background loop on the running event loop."""

        if self.running:
            raise RuntimeError("Scheduler already running")
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="lottoshop:auto-draw")
        logger.info(
            f"Auto draw scheduler started ({self._settings.first_slot} to "
            f"{self._settings.last_slot}, {self._settings.timezone})"
        )
        return self._task

    async def stop(self) -> None:
        """Ask the loop to stop and wait for the current tick to finish."""

        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def run_single_tick(self, now: Optional[datetime] = None) -> Optional[DrawOutcome]:
        """Run one tick for ``now`` (default: the clock) and return its outcome.

        The same minute is never settled twice by one scheduler; errors are
        logged and reported as ``None``.
        """

        moment = (now or self._clock()).replace(second=0, microsecond=0)
        if moment == self._last_minute:
            return None
        self._last_minute = moment
        try:
            outcome = await asyncio.to_thread(self._settle, moment)
        except Exception:
            logger.exception(f"Auto draw failed at {moment.isoformat()}")
            return None
        if outcome is not None:
            logger.info(
                f"Auto draw {outcome.request.draw_date} {outcome.request.draw_slot}: "
                f"{outcome.status.value}"
            )
        return outcome

    def _settle(self, moment: datetime) -> Optional[DrawOutcome]:
        with self._session_factory.begin() as session:
            return run_auto_draw(session, moment, settings=self._settings)

    async def _loop(self) -> None:
        try:
            while not self._stop.is_set():
                await self.run_single_tick()
                now = self._clock()
                delay = 60 - now.second - now.microsecond / 1_000_000
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=max(delay, 0.5))
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Auto draw scheduler cancelled")
            raise
        finally:
            logger.info("Auto draw scheduler stopped")


__all__ = ["AutoDrawScheduler"]
