"""Budget-constrained selection of purchased winning numbers."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence

from .aggregator import SalesTotals
from .budget import Budget
from .numbers import PAYOUT_RATE, WinningEntry, prefix_of, series_of

logger = logging.getLogger(__name__)

LOWEST_MIN_SHARE = Decimal("0.30")
LOWEST_MAX_SHARE = Decimal("0.40")


class SelectionStrategy(str, Enum):
    """How purchased numbers are walked when picking winners."""

    QUANTITY_DESC = "quantity_desc"
    """Numbers by descending aggregated quantity."""

    VOLUME_DESC = "volume_desc"
    """Sellers by descending sold units, entry by entry."""

    VOLUME_ASC = "volume_asc"
    """Sellers by ascending sold units, with the tightened ceiling."""

    LOWEST_QUANTITY = "lowest_quantity"
    """Lowest-quantity numbers within 30% (or 40%) of the pool."""

    PRIORITY = "priority"
    """Priority sellers first, then everyone else."""


RANDOM_STRATEGIES: tuple[SelectionStrategy, ...] = (
    SelectionStrategy.QUANTITY_DESC,
    SelectionStrategy.VOLUME_DESC,
    SelectionStrategy.VOLUME_ASC,
    SelectionStrategy.LOWEST_QUANTITY,
)


class RandomStrategyPolicy:
    """Pick one of the non-priority strategies uniformly from ``rng``."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        strategies: Sequence[SelectionStrategy] = RANDOM_STRATEGIES,
    ) -> None:
        if not strategies or SelectionStrategy.PRIORITY in strategies:
            raise ValueError("strategies must be non-empty and exclude PRIORITY")
        self._rng = rng or random.Random()
        self._strategies = tuple(strategies)

    def choose(self) -> SelectionStrategy:
        return self._rng.choice(self._strategies)


class FixedStrategyPolicy:
    """Always use the same strategy; intended for tests and manual overrides."""

    def __init__(self, strategy: SelectionStrategy) -> None:
        if strategy is SelectionStrategy.PRIORITY:
            raise ValueError("PRIORITY is chosen by the presence of priority sellers")
        self._strategy = strategy

    def choose(self) -> SelectionStrategy:
        return self._strategy


@dataclass
class Selection:
    """Winners picked from real purchases, before series filling."""

    strategy: SelectionStrategy
    capacity: int
    remaining_capacity: int
    winners: list[WinningEntry] = field(default_factory=list)

    @property
    def used_units(self) -> int:
        return sum(w.quantity for w in self.winners)

    @property
    def total_payout(self) -> int:
        return sum(w.payout for w in self.winners)


class _Picker:
    """Mutable selection state: remaining capacity and blocked prefixes."""

    def __init__(
        self,
        capacity: int,
        quantities: dict[str, int],
        excluded: Iterable[str],
        partial: bool = False,
    ) -> None:
        self.capacity = capacity
        self.partial = partial
        self.quantities = quantities
        self.excluded = frozenset(excluded)
        self.chosen: dict[str, WinningEntry] = {}
        self.blocked_prefixes: set[int] = set()

    @property
    def exhausted(self) -> bool:
        return self.capacity <= 0

    def try_take(self, number: str, entry_quantity: int, ceiling: Optional[int]) -> bool:
        if number in self.chosen or number in self.excluded:
            return False
        if series_of(number) is None:
            return False
        prefix = prefix_of(number)
        if prefix in self.blocked_prefixes:
            return False
        quantity = self.quantities.get(number, 0)
        if entry_quantity <= 0 or quantity <= 0:
            return False
        if ceiling is not None and entry_quantity > ceiling:
            logger.debug(f"Skip {number}: quantity {entry_quantity} above ceiling {ceiling}")
            return False
        if quantity > self.capacity:
            if not self.partial:
                logger.debug(f"Skip {number}: quantity {quantity} above capacity {self.capacity}")
                return False
            logger.debug(f"Honour {number} partially: {self.capacity} of {quantity} units")
            quantity = self.capacity
        self.chosen[number] = WinningEntry.for_quantity(number, quantity)
        self.capacity -= quantity
        self.blocked_prefixes.add(prefix)
        logger.debug(f"Winner {number} x{quantity}, remaining capacity {self.capacity}")
        return True

    def selection(self, strategy: SelectionStrategy, capacity: int) -> Selection:
        return Selection(
            strategy=strategy,
            capacity=capacity,
            remaining_capacity=self.capacity,
            winners=list(self.chosen.values()),
        )


class WinnerSelector:
    """Pick purchased numbers as winners within the draw's capacity.

    Every accepted number reserves its whole aggregated quantity, so the
    payout of the selection never exceeds the budget, and blocks its prefix
    so each prefix yields at most one winner. With ``partial=True`` a number
    larger than the remaining capacity is honoured for what is left instead
    of being skipped.
    """

    def __init__(self, payout_rate: int = PAYOUT_RATE, *, partial: bool = False) -> None:
        self._rate = payout_rate
        self._partial = partial

    def select(
        self,
        totals: SalesTotals,
        budget: Budget,
        *,
        excluded: Iterable[str] = (),
        priority_sellers: Sequence[int] = (),
        strategy: Optional[SelectionStrategy] = None,
    ) -> Selection:
        """Run the selection.

        Parameters
        ----------
        totals : SalesTotals
            Aggregated slot sales.
        budget : Budget
            Budget whose ``capacity`` bounds the selected units.
        excluded : Iterable[str], default: ()
            Numbers removed by the pre-screen.
        priority_sellers : Sequence[int], default: ()
            When non-empty, priority mode is used and ``strategy`` is ignored.
        strategy : Optional[SelectionStrategy], default: None
            Strategy for the non-priority case; required when there are no
            priority sellers.

        Returns
        -------
        Selection
            The winners in the order they were accepted.
        """

        if priority_sellers:
            result = self._priority(totals, budget, excluded, priority_sellers)
        else:
            if strategy is None or strategy is SelectionStrategy.PRIORITY:
                raise ValueError("A non-priority strategy is required without priority sellers")
            handler = {
                SelectionStrategy.QUANTITY_DESC: self._by_quantity,
                SelectionStrategy.VOLUME_DESC: self._by_volume_desc,
                SelectionStrategy.VOLUME_ASC: self._by_volume_asc,
                SelectionStrategy.LOWEST_QUANTITY: self._lowest_quantity,
            }[strategy]
            result = handler(totals, budget, excluded)
        logger.info(
            f"Selection {result.strategy.value}: {len(result.winners)} winners, "
            f"{result.used_units}/{result.capacity} units"
        )
        return result

    def ceiling(self, totals: SalesTotals, seller_id: int, multiplier: int) -> int:
        """Largest entry quantity a seller may win with.

        ``floor(units_sold * multiplier / payout_rate)``, where ``units_sold``
        is the seller's total quantity in the slot.
        """

        units = totals.seller_quantities.get(seller_id, 0)
        return math.floor(units * multiplier / self._rate)

    def _by_quantity(self, totals, budget, excluded) -> Selection:
        picker = _Picker(budget.capacity, totals.quantities, excluded, self._partial)
        ranked = sorted(totals.quantities.items(), key=lambda item: (-item[1], item[0]))
        for number, quantity in ranked:
            if picker.exhausted:
                break
            sellers = totals.number_to_sellers.get(number, ())
            ceiling = sum(self.ceiling(totals, seller, 2) for seller in sellers)
            picker.try_take(number, quantity, ceiling)
        return picker.selection(SelectionStrategy.QUANTITY_DESC, budget.capacity)

    def _walk_sellers(self, picker: _Picker, totals, sellers: Iterable[int], multiplier: int) -> None:
        for seller in sellers:
            if picker.exhausted:
                return
            ceiling = self.ceiling(totals, seller, multiplier)
            for purchase in totals.purchases_by_seller(seller):
                for entry in purchase.entries:
                    if picker.exhausted:
                        return
                    picker.try_take(entry.number, entry.quantity, ceiling)

    def _sellers_by_volume(self, totals: SalesTotals, descending: bool) -> list[int]:
        sign = -1 if descending else 1
        return sorted(
            totals.seller_quantities,
            key=lambda seller: (sign * totals.seller_quantities[seller], seller),
        )

    def _by_volume_desc(self, totals, budget, excluded) -> Selection:
        picker = _Picker(budget.capacity, totals.quantities, excluded, self._partial)
        self._walk_sellers(picker, totals, self._sellers_by_volume(totals, True), 2)
        return picker.selection(SelectionStrategy.VOLUME_DESC, budget.capacity)

    def _by_volume_asc(self, totals, budget, excluded) -> Selection:
        picker = _Picker(budget.capacity, totals.quantities, excluded, self._partial)
        self._walk_sellers(picker, totals, self._sellers_by_volume(totals, False), 1)
        return picker.selection(SelectionStrategy.VOLUME_ASC, budget.capacity)

    def _lowest_quantity(self, totals, budget, excluded) -> Selection:
        ranked = sorted(totals.quantities.items(), key=lambda item: (item[1], item[0]))
        min_target = min(budget.share_capacity(LOWEST_MIN_SHARE), budget.capacity)
        max_target = min(budget.share_capacity(LOWEST_MAX_SHARE), budget.capacity)

        def run(target: int) -> _Picker:
            picker = _Picker(target, totals.quantities, excluded, self._partial)
            for number, quantity in ranked:
                if picker.exhausted:
                    break
                picker.try_take(number, quantity, None)
            return picker

        picker = run(min_target)
        used = min_target - picker.capacity
        if used < min_target and max_target > min_target:
            logger.debug(f"Lowest mode reached {used}/{min_target} units, widening to {max_target}")
            picker = run(max_target)
            target = max_target
        else:
            target = min_target
        return picker.selection(SelectionStrategy.LOWEST_QUANTITY, target)

    def _priority(self, totals, budget, excluded, priority_sellers: Sequence[int]) -> Selection:
        picker = _Picker(budget.capacity, totals.quantities, excluded, self._partial)
        self._walk_sellers(picker, totals, priority_sellers, 2)
        if not picker.exhausted:
            prioritized = set(priority_sellers)
            others: list[int] = []
            for purchase in totals.purchases:
                if purchase.seller_id not in prioritized and purchase.seller_id not in others:
                    others.append(purchase.seller_id)
            self._walk_sellers(picker, totals, others, 1)
        return picker.selection(SelectionStrategy.PRIORITY, budget.capacity)


__all__ = [
    "FixedStrategyPolicy",
    "RANDOM_STRATEGIES",
    "RandomStrategyPolicy",
    "Selection",
    "SelectionStrategy",
    "WinnerSelector",
]
