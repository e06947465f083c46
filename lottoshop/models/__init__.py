from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .seller import Seller  # noqa: F401
from .ticket import Ticket  # noqa: F401
from .win_percentage import WinPercentage  # noqa: F401
from .draw_result import DrawResult  # noqa: F401

__all__ = [
    "Base",
    "Seller",
    "Ticket",
    "WinPercentage",
    "DrawResult",
]
