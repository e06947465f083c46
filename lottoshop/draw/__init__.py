"""The draw settlement subsystem."""

from .aggregator import SalesAggregator, SalesTotals, SlotPurchase
from .budget import Budget, BudgetCalculator
from .engine import (
    DrawOutcome,
    DrawRequest,
    DrawSettlementEngine,
    DrawStatus,
)
from .errors import (
    DrawAlreadyGeneratedError,
    DrawError,
    DrawTimeoutError,
    FillerExhaustedError,
    InvalidDrawRequestError,
    ResultValidationError,
    TicketParseError,
)
from .filler import SeriesFiller
from .lock import DrawLock
from .numbers import NumberEntry, WinningEntry, parse_number_entries
from .priority import PrioritySellerResolver
from .repository import DrawRepository
from .selector import (
    FixedStrategyPolicy,
    RandomStrategyPolicy,
    Selection,
    SelectionStrategy,
    WinnerSelector,
)
from .slots import normalize_slot
from .validator import validate_result

__all__ = [
    "Budget",
    "BudgetCalculator",
    "DrawAlreadyGeneratedError",
    "DrawError",
    "DrawLock",
    "DrawOutcome",
    "DrawRepository",
    "DrawRequest",
    "DrawSettlementEngine",
    "DrawStatus",
    "DrawTimeoutError",
    "FillerExhaustedError",
    "FixedStrategyPolicy",
    "InvalidDrawRequestError",
    "NumberEntry",
    "PrioritySellerResolver",
    "RandomStrategyPolicy",
    "ResultValidationError",
    "SalesAggregator",
    "SalesTotals",
    "Selection",
    "SelectionStrategy",
    "SeriesFiller",
    "SlotPurchase",
    "TicketParseError",
    "WinnerSelector",
    "WinningEntry",
    "normalize_slot",
    "parse_number_entries",
    "validate_result",
]
