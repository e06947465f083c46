from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .ticket import Ticket


class Seller(Base):
    """A shop account that sells tickets.

    Only the fields read by the draw engine are modelled here; balances and
    commissions are owned by the ledger subsystem. A ``blocked`` seller is
    never served as a priority seller.
    """

    __tablename__ = "sellers"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    user_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    priority: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Sellers flagged here are served first by the winner selector."""

    blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tickets: Mapped[list["Ticket"]] = relationship(back_populates="seller")

    def __init__(
        self,
        *,
        user_name: str,
        priority: bool = False,
        blocked: bool = False,
    ) -> None:
        self.user_name = user_name
        self.priority = priority
        self.blocked = blocked

    def __repr__(self) -> str:
        return (
            f"<Seller(id={self.id}, user_name='{self.user_name}', "
            f"priority={self.priority})>"
        )

    @validates("user_name")
    def _normalize_user_name(self, _key: str, value: str) -> str:
        normalized = (value or "").strip()
        if not normalized:
            raise ValueError("user_name must not be empty")
        return normalized

    @classmethod
    def priority_ids(cls, session: Session) -> list[int]:
        """Return ids of unblocked sellers flagged for priority, highest id first."""
        stmt = (
            select(cls.id)
            .where(cls.priority.is_(True), cls.blocked.is_(False))
            .order_by(cls.id.desc())
        )
        return list(session.scalars(stmt))
