"""Settlement of one draw slot, from ticket sales to a persisted result."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction

from ..config import DrawSettings
from ..models import DrawResult, WinPercentage
from .aggregator import SalesAggregator
from .budget import BudgetCalculator
from .deadline import Deadline
from .errors import DrawAlreadyGeneratedError, InvalidDrawRequestError
from .filler import SeriesFiller
from .lock import DrawLock
from .priority import PrioritySellerResolver
from .repository import DrawRepository
from .selector import RandomStrategyPolicy, WinnerSelector
from .slots import is_business_slot, normalize_slot
from .validator import validate_result

logger = logging.getLogger(__name__)

RANDOM_RESULT_STRATEGY = "random"
"""Strategy recorded for slots that sold no tickets."""


@dataclass(frozen=True)
class DrawRequest:
    """A validated request to settle one slot."""

    draw_date: date
    draw_slot: str
    priority_seller_id: Optional[int] = None

    @classmethod
    def parse(
        cls,
        draw_time: Any,
        draw_date: Any,
        priority_seller_id: Any = None,
        *,
        first_slot: str = "09:00 AM",
        last_slot: str = "11:45 PM",
    ) -> "DrawRequest":
        """Validate raw trigger input.

        Parameters
        ----------
        draw_time : Any
            Slot label in any accepted form, e.g. ``"2:00 pm"`` or ``"14:00"``.
        draw_date : Any
            A :class:`datetime.date` or a ``"YYYY-MM-DD"`` string.
        priority_seller_id : Any, default: None
            Optional seller id that overrides the configured priority list.
        first_slot, last_slot : str
            Business hours; the slot must be one of the 15-minute slots
            between them.

        Raises
        ------
        InvalidDrawRequestError
            If the slot or the date is missing or malformed, or the time is
            not a draw slot.
        """

        draw_slot = normalize_slot(draw_time)
        if not is_business_slot(draw_slot, first_slot, last_slot):
            raise InvalidDrawRequestError(
                f"{draw_slot} is not a draw slot (every 15 minutes, {first_slot} to {last_slot})"
            )
        if draw_date is None or (isinstance(draw_date, str) and not draw_date.strip()):
            raise InvalidDrawRequestError("drawDate is required")
        if isinstance(draw_date, date):
            parsed_date = draw_date
        else:
            try:
                parsed_date = date.fromisoformat(str(draw_date).strip())
            except ValueError as exc:
                raise InvalidDrawRequestError(f"Invalid drawDate: {draw_date!r}") from exc
        seller_id: Optional[int] = None
        if priority_seller_id not in (None, ""):
            try:
                seller_id = int(priority_seller_id)
            except (TypeError, ValueError) as exc:
                raise InvalidDrawRequestError(
                    f"Invalid priority seller id: {priority_seller_id!r}"
                ) from exc
        return cls(draw_date=parsed_date, draw_slot=draw_slot, priority_seller_id=seller_id)


class DrawStatus(str, Enum):
    GENERATED = "generated"
    ALREADY_GENERATED = "already_generated"
    IN_PROGRESS = "in_progress"


@dataclass
class DrawOutcome:
    """What a settlement attempt did.

    Attributes
    ----------
    status : DrawStatus
        ``GENERATED`` when this call wrote the result, ``ALREADY_GENERATED``
        when a result existed, ``IN_PROGRESS`` when another run holds the slot.
    request : DrawRequest
        The settled request.
    result : Optional[DrawResult]
        The written or pre-existing result; ``None`` while in progress.
    rejected_ticket_ids : list[int]
        Tickets skipped because their numbers could not be parsed.
    """

    status: DrawStatus
    request: DrawRequest
    result: Optional[DrawResult] = None
    rejected_ticket_ids: list[int] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return self.status is DrawStatus.GENERATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "draw_date": self.request.draw_date.isoformat(),
            "draw_slot": self.request.draw_slot,
            "result": self.result.to_dict() if self.result is not None else None,
            "rejected_ticket_ids": list(self.rejected_ticket_ids),
        }


class DrawSettlementEngine:
    """Produce and persist the result of a draw slot exactly once."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Optional[DrawSettings] = None,
        rng: Optional[random.Random] = None,
        strategy_policy=None,
        lock: Optional[DrawLock] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Bind the engine to a session.

        Parameters
        ----------
        session : Session
            Session whose transaction the settlement runs in. The engine
            flushes but never commits.
        settings : Optional[DrawSettings], default: None
            Tunables; defaults to :meth:`DrawSettings` defaults.
        rng : Optional[random.Random], default: None
            Randomness for filler numbers, ordering and the default strategy
            policy. Pass a seeded instance for reproducible results.
        strategy_policy : default: None
            Object with a ``choose()`` method returning a
            :class:`~lottoshop.draw.selector.SelectionStrategy`; used when no
            priority sellers exist. Defaults to :class:`RandomStrategyPolicy`.
        lock : Optional[DrawLock], default: None
            Process-wide lock shared by every engine of the process. A private
            lock is created when omitted, which only guards this instance.
        clock : Callable[[], float], default: time.monotonic
            Clock for the execution deadline.
        """

        self._session = session
        self._settings = settings or DrawSettings()
        self._rng = rng or random.Random()
        self._policy = strategy_policy or RandomStrategyPolicy(self._rng)
        self._lock = lock or DrawLock(self._settings.lock_timeout_seconds)
        self._clock = clock
        self._repository = DrawRepository(session)
        self._aggregator = SalesAggregator(
            session,
            timezone=self._settings.timezone,
            batch_size=self._settings.batch_size,
        )
        self._budget = BudgetCalculator()
        self._priority = PrioritySellerResolver(session)
        self._selector = WinnerSelector(partial=self._settings.partial_payouts)
        self._filler = SeriesFiller(
            self._rng,
            max_tries=self._settings.filler_max_tries,
            allow_repeats_threshold=self._settings.allow_repeats_threshold,
        )

    @property
    def repository(self) -> DrawRepository:
        return self._repository

    def settle(self, request: DrawRequest) -> DrawOutcome:
        """Settle ``request`` unless its slot is already settled or being settled.

        Notes
        -----
        The run takes the in-process :class:`DrawLock` first, then the
        database lock of the slot, and checks for an existing result before
        doing any work. Everything after that shares one deadline of
        ``settings.max_execution_seconds``; a timeout aborts before anything
        is written.

        The engine only flushes. When it writes a result, the in-process lock
        stays held until the caller's transaction commits or rolls back, so a
        concurrent trigger in this process reports ``in_progress`` instead of
        racing the commit. The MySQL named lock is released before the commit;
        across processes the unique constraint on the slot is the guard.

        Raises
        ------
        DrawTimeoutError
            The deadline passed.
        InvalidDrawRequestError
            The priority override names an unknown seller.
        ResultValidationError
            The assembled result broke a structural invariant.
        """

        key = DrawLock.key_for(request.draw_date, request.draw_slot)
        if not self._lock.acquire(key):
            logger.info(f"Draw {key} is already being generated")
            return DrawOutcome(DrawStatus.IN_PROGRESS, request)
        held_until_commit = False
        try:
            if not self._repository.lock_slot(request.draw_date, request.draw_slot):
                return DrawOutcome(DrawStatus.IN_PROGRESS, request)
            try:
                outcome = self._settle_locked(request)
            finally:
                self._repository.unlock_slot(request.draw_date, request.draw_slot)
            if outcome.created and self._session.in_transaction():
                self._release_at_transaction_end(key)
                held_until_commit = True
            return outcome
        finally:
            if not held_until_commit:
                self._lock.release(key)

    def _release_at_transaction_end(self, key: str) -> None:
        """Release ``key`` once the session's outermost transaction ends."""

        pending = [True]

        def release(_session: Session, transaction: SessionTransaction) -> None:
            if pending[0] and transaction.parent is None:
                pending[0] = False
                self._lock.release(key)

        event.listen(self._session, "after_transaction_end", release)

    def _settle_locked(self, request: DrawRequest) -> DrawOutcome:
        existing = self._repository.find_existing(request.draw_date, request.draw_slot)
        if existing is not None:
            logger.info(f"Result already generated for {request.draw_date} {request.draw_slot}")
            return DrawOutcome(DrawStatus.ALREADY_GENERATED, request, existing)

        deadline = Deadline(self._settings.max_execution_seconds, clock=self._clock)
        priority_sellers = self._priority.resolve(request.priority_seller_id)
        totals = self._aggregator.aggregate(request.draw_date, request.draw_slot, deadline)
        win_percent = WinPercentage.current(self._session)
        budget = self._budget.compute(totals.total_points, win_percent)

        if totals.is_empty:
            logger.info(f"No tickets for {request.draw_date} {request.draw_slot}, drawing at random")
            strategy = RANDOM_RESULT_STRATEGY
            entries = self._filler.fill([], totals)
        else:
            excluded = self._budget.prescreen(totals.quantities, budget)
            selection = self._selector.select(
                totals,
                budget,
                excluded=excluded,
                priority_sellers=priority_sellers,
                strategy=None if priority_sellers else self._policy.choose(),
            )
            strategy = selection.strategy.value
            deadline.check("winner selection")
            entries = self._filler.fill(selection.winners, totals, excluded)

        validate_result(entries)
        deadline.check("result assembly")

        result = DrawResult(
            draw_date=request.draw_date,
            draw_slot=request.draw_slot,
            winning_numbers=[entry.to_dict() for entry in entries],
            strategy=strategy,
            total_points=totals.total_points,
            win_percentage=win_percent,
            budget=budget.pool,
        )
        try:
            self._repository.save(result)
        except DrawAlreadyGeneratedError:
            existing = self._repository.find_existing(request.draw_date, request.draw_slot)
            return DrawOutcome(
                DrawStatus.ALREADY_GENERATED, request, existing, totals.rejected_ticket_ids
            )

        winners = sum(1 for entry in entries if entry.quantity > 0)
        logger.info(
            f"Draw {request.draw_date} {request.draw_slot} generated: strategy={strategy} "
            f"winners={winners} payout={sum(e.payout for e in entries)}/{budget.pool}"
        )
        return DrawOutcome(DrawStatus.GENERATED, request, result, totals.rejected_ticket_ids)


__all__ = [
    "DrawOutcome",
    "DrawRequest",
    "DrawSettlementEngine",
    "DrawStatus",
    "RANDOM_RESULT_STRATEGY",
]
