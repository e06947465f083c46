"""Resolution of the sellers whose numbers are considered first."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Seller
from .errors import InvalidDrawRequestError

logger = logging.getLogger(__name__)


class PrioritySellerResolver:
    """Resolve the ordered list of sellers whose numbers are considered first."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def resolve(self, override_seller_id: Optional[int] = None) -> list[int]:
        """Return the priority seller ids in the order they are served.

        A manual trigger may name one seller; that seller then becomes the
        only priority seller. Otherwise every unblocked seller flagged
        ``priority`` is returned, highest id first.

        Raises
        ------
        InvalidDrawRequestError
            If the override seller does not exist or is blocked.
        """

        if override_seller_id is not None:
            seller = self._session.get(Seller, override_seller_id)
            if seller is None:
                raise InvalidDrawRequestError(f"Unknown seller: {override_seller_id}")
            if seller.blocked:
                raise InvalidDrawRequestError(f"Seller {override_seller_id} is blocked")
            return [override_seller_id]
        ids = Seller.priority_ids(self._session)
        if ids:
            logger.info(f"Priority sellers: {ids}")
        return ids
