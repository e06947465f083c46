"""Session-level entry points used by the HTTP layer, the scheduler and scripts."""

from __future__ import annotations

import logging
import random
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from .config import DrawSettings
from .draw.engine import DrawOutcome, DrawRequest, DrawSettlementEngine
from .draw.lock import DrawLock
from .draw.slots import is_business_slot, slot_at
from .models import DrawResult, Seller, WinPercentage

logger = logging.getLogger(__name__)

_draw_lock: Optional[DrawLock] = None
_draw_lock_guard = threading.Lock()


def get_draw_lock(settings: Optional[DrawSettings] = None) -> DrawLock:
    """Return the process-wide :class:`DrawLock`, creating it on first use."""

    global _draw_lock
    with _draw_lock_guard:
        if _draw_lock is None:
            timeout = (settings or DrawSettings()).lock_timeout_seconds
            _draw_lock = DrawLock(timeout)
        return _draw_lock


def trigger_draw(
    session: Session,
    draw_time: Any,
    draw_date: Any,
    priority_seller_id: Any = None,
    *,
    settings: Optional[DrawSettings] = None,
    rng: Optional[random.Random] = None,
    strategy_policy=None,
    lock: Optional[DrawLock] = None,
) -> DrawOutcome:
    """Settle a slot on demand.

    Parameters
    ----------
    session : Session
        Session in an open transaction; the caller commits.
    draw_time : Any
        Slot label in any accepted form.
    draw_date : Any
        ``"YYYY-MM-DD"`` string or :class:`datetime.date`.
    priority_seller_id : Any, default: None
        Optional seller whose numbers are considered first, replacing the
        sellers flagged ``priority``.
    settings, rng, strategy_policy, lock
        Forwarded to :class:`~lottoshop.draw.engine.DrawSettlementEngine`;
        ``lock`` defaults to the process-wide lock.

    Returns
    -------
    DrawOutcome
        ``generated``, ``already_generated`` or ``in_progress``.

    Raises
    ------
    InvalidDrawRequestError
        If the slot or date is missing or malformed; nothing is read.
    """

    settings = settings or DrawSettings.from_env()
    request = DrawRequest.parse(
        draw_time,
        draw_date,
        priority_seller_id,
        first_slot=settings.first_slot,
        last_slot=settings.last_slot,
    )
    logger.info(f"Manual draw trigger for {request.draw_date} {request.draw_slot}")
    engine = DrawSettlementEngine(
        session,
        settings=settings,
        rng=rng,
        strategy_policy=strategy_policy,
        lock=lock or get_draw_lock(settings),
    )
    return engine.settle(request)


def run_auto_draw(
    session: Session,
    now: Optional[datetime] = None,
    *,
    settings: Optional[DrawSettings] = None,
    rng: Optional[random.Random] = None,
    strategy_policy=None,
    lock: Optional[DrawLock] = None,
) -> Optional[DrawOutcome]:
    """Settle the slot that starts at ``now``, if it is a business slot.

    ``now`` defaults to the current time and is interpreted in the draw
    timezone. Returns ``None`` when ``now`` is not on a slot boundary or lies
    outside the first and last business slots.
    """

    settings = settings or DrawSettings.from_env()
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(ZoneInfo(settings.timezone))
    slot = slot_at(local)
    if slot is None or not is_business_slot(slot, settings.first_slot, settings.last_slot):
        logger.debug(f"No draw scheduled at {local:%Y-%m-%d %H:%M}")
        return None

    request = DrawRequest(draw_date=local.date(), draw_slot=slot)
    logger.info(f"Auto draw for {request.draw_date} {request.draw_slot}")
    engine = DrawSettlementEngine(
        session,
        settings=settings,
        rng=rng,
        strategy_policy=strategy_policy,
        lock=lock or get_draw_lock(settings),
    )
    return engine.settle(request)


def get_draw_result(
    session: Session,
    draw_date: Any,
    draw_time: Any,
    *,
    settings: Optional[DrawSettings] = None,
) -> Optional[DrawResult]:
    """Return the stored result of a slot, or ``None``.

    Raises
    ------
    InvalidDrawRequestError
        If the date cannot be parsed or the time is not a draw slot.
    """

    settings = settings or DrawSettings.from_env()
    request = DrawRequest.parse(
        draw_time, draw_date, first_slot=settings.first_slot, last_slot=settings.last_slot
    )
    return DrawResult.get_for_slot(session, request.draw_date, request.draw_slot)


def set_win_percentage(
    session: Session, percentage: Decimal | int | str, *, at: Optional[datetime] = None
) -> WinPercentage:
    """Append a new win percentage; it applies to every later settlement."""

    row = WinPercentage(percentage=percentage, created_at=at)
    session.add(row)
    session.flush()
    logger.info(f"Win percentage set to {row.percentage}")
    return row


def toggle_seller_priority(
    session: Session, seller_id: int, priority: Optional[bool] = None
) -> Seller:
    """Flip a seller's priority flag, or set it when ``priority`` is given.

    Raises
    ------
    ValueError
        If no seller has ``seller_id``.
    """

    seller = session.get(Seller, seller_id)
    if seller is None:
        raise ValueError(f"Seller {seller_id} not found")
    seller.priority = (not seller.priority) if priority is None else bool(priority)
    session.flush()
    logger.info(f"Seller {seller_id} priority is now {seller.priority}")
    return seller


__all__ = [
    "get_draw_lock",
    "get_draw_result",
    "run_auto_draw",
    "set_win_percentage",
    "toggle_seller_priority",
    "trigger_draw",
]
