"""Ticket rows written by the point of sale and read by the draw engine."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .seller import Seller


class Ticket(Base):
    """A printed ticket covering one or more draw slots.

    ``ticket_numbers`` keeps whatever encoding the selling terminal produced:
    a JSON list of ``{"ticketNumber": ..., "quantity": ...}`` objects, the same
    list serialized as text, or a ``"10-07:2,30-11:1"`` pair string. Use
    :func:`lottoshop.draw.numbers.parse_number_entries` to read it.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    seller_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("sellers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    """Seller that printed the ticket."""

    draw_times: Mapped[Any] = mapped_column(JSON, nullable=False)
    """Slot labels the ticket plays in, as entered at the terminal."""

    ticket_numbers: Mapped[Any] = mapped_column(JSON, nullable=False)
    """Purchased numbers in their stored encoding."""

    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Sum of purchased units as recorded by the terminal."""

    total_points: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    """Points collected for the ticket."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Sale timestamp, always stored in UTC."""

    seller: Mapped["Seller"] = relationship(back_populates="tickets")

    __table_args__ = (Index("ix_tickets_created_at", "created_at"),)

    def __init__(
        self,
        *,
        draw_times: Any,
        ticket_numbers: Any,
        seller: Optional["Seller"] = None,
        seller_id: Optional[int] = None,
        total_quantity: int = 0,
        total_points: Decimal | int | str = Decimal("0"),
        created_at: Optional[datetime] = None,
    ) -> None:
        if seller is not None:
            self.seller = seller
        if seller_id is not None:
            self.seller_id = seller_id
        self.draw_times = draw_times
        self.ticket_numbers = ticket_numbers
        self.total_quantity = total_quantity
        self.total_points = Decimal(str(total_points))
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Ticket(id={id}, seller_id={seller}, total_points={points})>".format(
            id=self.id,
            seller=self.seller_id,
            points=self.total_points,
        )

    @validates("created_at")
    def _as_utc(self, _key: str, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
