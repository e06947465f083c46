"""Aggregation of a slot's ticket sales."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.utils import local_day_bounds
from ..models import Ticket
from .deadline import Deadline
from .errors import TicketParseError
from .numbers import NumberEntry, parse_number_entries, series_of
from .slots import parse_draw_times

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotPurchase:
    """A ticket that plays in the slot being settled, with parsed entries."""

    ticket_id: int
    seller_id: int
    entries: tuple[NumberEntry, ...]
    points: Decimal

    @property
    def quantity(self) -> int:
        return sum(entry.quantity for entry in self.entries)


@dataclass
class SalesTotals:
    """Everything the selector and filler need to know about a slot's sales.

    Attributes
    ----------
    quantities : dict[str, int]
        Aggregated purchased quantity per number.
    number_to_sellers : dict[str, set[int]]
        Sellers that sold each number.
    seller_quantities : dict[int, int]
        Units each seller sold in the slot.
    purchases : list[SlotPurchase]
        Matching tickets in stored order.
    total_points : Decimal
        Sum of recorded points over ``purchases``.
    rejected_ticket_ids : list[int]
        Tickets skipped because their numbers could not be parsed.
    """

    quantities: dict[str, int] = field(default_factory=dict)
    number_to_sellers: dict[str, set[int]] = field(default_factory=dict)
    seller_quantities: dict[int, int] = field(default_factory=dict)
    purchases: list[SlotPurchase] = field(default_factory=list)
    total_points: Decimal = Decimal("0")
    rejected_ticket_ids: list[int] = field(default_factory=list)

    @property
    def purchased_numbers(self) -> set[str]:
        return set(self.quantities)

    @property
    def is_empty(self) -> bool:
        return not self.purchases

    def add(self, purchase: SlotPurchase) -> None:
        self.purchases.append(purchase)
        self.total_points += purchase.points
        seller = purchase.seller_id
        self.seller_quantities[seller] = self.seller_quantities.get(seller, 0) + purchase.quantity
        for entry in purchase.entries:
            self.quantities[entry.number] = self.quantities.get(entry.number, 0) + entry.quantity
            self.number_to_sellers.setdefault(entry.number, set()).add(seller)

    def purchases_by_seller(self, seller_id: int) -> list[SlotPurchase]:
        return [p for p in self.purchases if p.seller_id == seller_id]

    def series_units(self, series: int) -> int:
        """Total purchased units whose number belongs to ``series``."""
        return sum(q for n, q in self.quantities.items() if series_of(n) == series)


class SalesAggregator:
    """Load and aggregate the tickets of one draw slot.

    Tickets are read in id order, ``batch_size`` rows at a time. Between
    batches the aggregator checks the run's :class:`Deadline` and calls
    ``pause`` so a large sales volume does not hold the worker.
    """

    def __init__(
        self,
        session: Session,
        *,
        timezone: str = "Asia/Kolkata",
        batch_size: int = 1000,
        pause: Optional[Callable[[], None]] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._session = session
        self._timezone = timezone
        self._batch_size = batch_size
        self._pause = pause or (lambda: time.sleep(0))

    def aggregate(
        self,
        draw_date: date,
        draw_slot: str,
        deadline: Optional[Deadline] = None,
    ) -> SalesTotals:
        """Aggregate the tickets sold on ``draw_date`` that play in ``draw_slot``.

        Raises
        ------
        DrawTimeoutError
            If ``deadline`` expires before every batch is processed. No
            partial totals are returned.
        """

        start, end = local_day_bounds(draw_date, self._timezone)
        totals = SalesTotals()
        last_id = 0
        scanned = 0
        while True:
            rows = self._session.execute(
                select(
                    Ticket.id,
                    Ticket.seller_id,
                    Ticket.draw_times,
                    Ticket.ticket_numbers,
                    Ticket.total_points,
                )
                .where(
                    Ticket.created_at >= start,
                    Ticket.created_at < end,
                    Ticket.id > last_id,
                )
                .order_by(Ticket.id)
                .limit(self._batch_size)
            ).all()
            if not rows:
                break
            for row in rows:
                self._consume(totals, row, draw_slot)
            scanned += len(rows)
            last_id = rows[-1].id
            if deadline is not None:
                deadline.check("sales aggregation")
            if len(rows) < self._batch_size:
                break
            self._pause()

        logger.info(
            f"Aggregated {len(totals.purchases)} of {scanned} tickets for "
            f"{draw_date} {draw_slot}: {len(totals.quantities)} numbers, "
            f"{totals.total_points} points"
        )
        return totals

    def _consume(self, totals: SalesTotals, row, draw_slot: str) -> None:
        if draw_slot not in parse_draw_times(row.draw_times):
            return
        try:
            entries = parse_number_entries(row.ticket_numbers)
        except TicketParseError as exc:
            logger.warning(f"Skipping ticket {row.id}: {exc}")
            totals.rejected_ticket_ids.append(row.id)
            return
        totals.add(
            SlotPurchase(
                ticket_id=row.id,
                seller_id=row.seller_id,
                entries=tuple(entries),
                points=Decimal(str(row.total_points or 0)),
            )
        )


__all__ = ["SalesAggregator", "SalesTotals", "SlotPurchase"]
