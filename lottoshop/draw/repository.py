"""Persistence of settled draws."""

from __future__ import annotations

import logging
import zlib
from datetime import date
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import DrawResult
from .errors import DrawAlreadyGeneratedError

logger = logging.getLogger(__name__)


class DrawRepository:
    """Read and write :class:`DrawResult` rows inside the caller's transaction.

    The repository never commits; the caller owns the transaction so that the
    advisory lock taken by :meth:`lock_slot` on PostgreSQL lives exactly as
    long as the settlement.
    """

    def __init__(self, session: Session, *, mysql_lock_timeout: int = 0) -> None:
        self._session = session
        self._mysql_lock_timeout = mysql_lock_timeout

    @property
    def _dialect(self) -> str:
        return self._session.get_bind().dialect.name

    @staticmethod
    def lock_name(draw_date: date, draw_slot: str) -> str:
        return f"draw:{draw_date.isoformat()}:{draw_slot}"

    def find_existing(self, draw_date: date, draw_slot: str) -> Optional[DrawResult]:
        """Return the result stored for exactly ``(draw_date, draw_slot)``."""
        return DrawResult.get_for_slot(self._session, draw_date, draw_slot)

    def lock_slot(self, draw_date: date, draw_slot: str) -> bool:
        """Try to take the database-level lock for a slot.

        Returns ``False`` when another connection holds it. PostgreSQL uses a
        transaction-scoped advisory lock, MySQL a named lock that must be
        given back with :meth:`unlock_slot`. Other backends have no such
        primitive and always succeed; the unique constraint on
        ``draw_results`` still rejects the second writer.
        """

        name = self.lock_name(draw_date, draw_slot)
        dialect = self._dialect
        if dialect == "postgresql":
            key = zlib.crc32(name.encode("utf-8"))
            acquired = self._session.execute(
                text("SELECT pg_try_advisory_xact_lock(:key)"), {"key": key}
            ).scalar()
        elif dialect in ("mysql", "mariadb"):
            acquired = self._session.execute(
                text("SELECT GET_LOCK(:name, :timeout)"),
                {"name": name, "timeout": self._mysql_lock_timeout},
            ).scalar() == 1
        else:
            return True
        if not acquired:
            logger.info(f"Database lock {name} is held elsewhere")
        return bool(acquired)

    def unlock_slot(self, draw_date: date, draw_slot: str) -> None:
        if self._dialect in ("mysql", "mariadb"):
            self._session.execute(
                text("SELECT RELEASE_LOCK(:name)"),
                {"name": self.lock_name(draw_date, draw_slot)},
            )

    def save(self, result: DrawResult) -> DrawResult:
        """Insert ``result``.

        Raises
        ------
        DrawAlreadyGeneratedError
            If a row for the same slot already exists. Only the savepoint is
            rolled back, so the surrounding transaction stays usable.
        """

        try:
            with self._session.begin_nested():
                self._session.add(result)
                self._session.flush()
        except IntegrityError as exc:
            logger.warning(
                f"Result for {result.draw_date} {result.draw_slot} was written concurrently"
            )
            raise DrawAlreadyGeneratedError(result.draw_date, result.draw_slot) from exc
        logger.info(f"Saved draw result {result.id} for {result.draw_date} {result.draw_slot}")
        return result


__all__ = ["DrawRepository"]
