"""Database model for settled draws."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from ..db.utils import dt_iso
from .base import Base


class DrawResult(Base):
    """Immutable outcome of one draw slot.

    Exactly one row exists per ``(draw_date, draw_slot)``; the unique
    constraint is the authoritative idempotency guard for concurrent
    settlements.
    """

    __tablename__ = "draw_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    draw_date: Mapped[date] = mapped_column(Date, nullable=False)
    """Business day of the draw in the draw timezone."""

    draw_slot: Mapped[str] = mapped_column(String(8), nullable=False)
    """Normalized slot label, e.g. ``"02:00 PM"``."""

    winning_numbers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    """The 30 ``{"number", "quantity", "payout"}`` entries in display order."""

    total_points: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    """Points collected by the tickets of this slot."""

    win_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    """Win percentage in force when the draw was settled."""

    budget: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Payout pool derived from ``total_points`` and ``win_percentage``."""

    strategy: Mapped[str] = mapped_column(String(32), nullable=False)
    """Selection strategy that produced the purchased winners."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the result was persisted."""

    __table_args__ = (
        UniqueConstraint("draw_date", "draw_slot", name="uq_draw_results_date_slot"),
    )

    def __init__(
        self,
        *,
        draw_date: date,
        draw_slot: str,
        winning_numbers: list[dict[str, Any]],
        strategy: str,
        total_points: Decimal | int | str = Decimal("0"),
        win_percentage: Decimal | int | str = Decimal("0"),
        budget: int = 0,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.draw_date = draw_date
        self.draw_slot = draw_slot
        self.winning_numbers = winning_numbers
        self.strategy = strategy
        self.total_points = Decimal(str(total_points))
        self.win_percentage = Decimal(str(win_percentage))
        self.budget = budget
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawResult(id={id}, draw_date={day}, draw_slot={slot}, strategy={strategy})>".format(
            id=self.id,
            day=self.draw_date,
            slot=self.draw_slot,
            strategy=self.strategy,
        )

    @property
    def numbers(self) -> list[str]:
        """Winning numbers in display order."""
        return [str(entry["number"]) for entry in self.winning_numbers]

    def to_dict(self) -> dict[str, Any]:
        """Serialize the result into the shape returned to API consumers."""

        return {
            "draw_date": self.draw_date.isoformat(),
            "draw_slot": self.draw_slot,
            "winning_numbers": [dict(entry) for entry in self.winning_numbers],
            "total_points": str(self.total_points),
            "win_percentage": str(self.win_percentage),
            "budget": self.budget,
            "strategy": self.strategy,
            "created_at": dt_iso(self.created_at),
        }

    @classmethod
    def get_for_slot(
        cls, session: Session, draw_date: date, draw_slot: str
    ) -> Optional["DrawResult"]:
        """Return the result stored for exactly ``(draw_date, draw_slot)``."""

        return session.scalar(
            select(cls).where(cls.draw_date == draw_date, cls.draw_slot == draw_slot)
        )


__all__ = ["DrawResult"]
