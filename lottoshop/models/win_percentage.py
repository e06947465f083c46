from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base


class WinPercentage(Base):
    """Configured share of collected points paid back to winners.

    Rows are append-only; the newest row is the active percentage.
    """

    __tablename__ = "win_percentages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __init__(
        self, *, percentage: Decimal | int | str, created_at: Optional[datetime] = None
    ) -> None:
        value = Decimal(str(percentage))
        if value < 0 or value > 100:
            raise ValueError("percentage must be between 0 and 100")
        self.percentage = value
        if created_at is not None:
            self.created_at = created_at

    @classmethod
    def current(cls, session: Session) -> Decimal:
        """Return the most recently configured percentage, ``0`` when unset."""

        stmt = select(cls.percentage).order_by(cls.created_at.desc(), cls.id.desc())
        value = session.scalars(stmt).first()
        return Decimal(value) if value is not None else Decimal("0")
