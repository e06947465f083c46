"""Payout pool and capacity calculation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Mapping

from .numbers import PAYOUT_RATE

logger = logging.getLogger(__name__)

PRE_SCREEN_SHARE = Decimal("0.8")
"""Share of the pool a single number may absorb before it is discarded."""


@dataclass(frozen=True)
class Budget:
    """Payout budget of one draw.

    Attributes
    ----------
    total_points : Decimal
        Points collected by the slot's tickets.
    win_percent : Decimal
        Configured win percentage applied to ``total_points``.
    pool : int
        ``floor(total_points * win_percent / 100)``.
    capacity : int
        Winning units the pool can fund, ``floor(pool / PAYOUT_RATE)``.
    pre_screen_limit : Decimal
        ``pool * 0.8``; a number whose payout alone exceeds it is discarded.
    """

    total_points: Decimal
    win_percent: Decimal
    pool: int
    capacity: int
    pre_screen_limit: Decimal

    def share_capacity(self, share: Decimal) -> int:
        """Capacity of ``share`` (e.g. ``0.3``) of the pool, in units."""
        return math.floor(Decimal(self.pool) * share / PAYOUT_RATE)


class BudgetCalculator:
    """Derive the payout :class:`Budget` and apply the anti-concentration screen."""

    def __init__(self, payout_rate: int = PAYOUT_RATE) -> None:
        self._rate = payout_rate

    def compute(self, total_points: Decimal, win_percent: Decimal) -> Budget:
        total_points = Decimal(total_points)
        win_percent = Decimal(win_percent)
        if total_points < 0:
            raise ValueError("total_points must not be negative")
        if not Decimal("0") <= win_percent <= Decimal("100"):
            raise ValueError("win_percent must be between 0 and 100")
        pool = int((total_points * win_percent / 100).to_integral_value(ROUND_FLOOR))
        budget = Budget(
            total_points=total_points,
            win_percent=win_percent,
            pool=pool,
            capacity=pool // self._rate,
            pre_screen_limit=Decimal(pool) * PRE_SCREEN_SHARE,
        )
        logger.info(
            f"Budget: points={total_points} win%={win_percent} pool={pool} "
            f"capacity={budget.capacity}"
        )
        return budget

    def prescreen(self, quantities: Mapping[str, int], budget: Budget) -> frozenset[str]:
        """Return numbers whose aggregated payout alone exceeds the screen limit."""

        excluded = frozenset(
            number
            for number, quantity in quantities.items()
            if quantity * self._rate > budget.pre_screen_limit
        )
        if excluded:
            logger.info(f"Pre-screen excluded {len(excluded)} numbers: {sorted(excluded)}")
        return excluded


__all__ = ["Budget", "BudgetCalculator", "PRE_SCREEN_SHARE"]
