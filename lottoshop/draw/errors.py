"""Exceptions raised by the draw settlement engine."""

from __future__ import annotations

from typing import Iterable


class DrawError(RuntimeError):
    """Base class for every draw settlement failure."""


class InvalidDrawRequestError(DrawError, ValueError):
    """The trigger is missing its slot or date, or either is malformed."""


class DrawAlreadyGeneratedError(DrawError):
    """A result for the slot has already been persisted."""

    def __init__(self, draw_date, draw_slot: str) -> None:
        super().__init__(f"Result already exists for {draw_date} {draw_slot}")
        self.draw_date = draw_date
        self.draw_slot = draw_slot


class DrawTimeoutError(DrawError):
    """The run exceeded its wall-clock ceiling; nothing was written."""


class TicketParseError(DrawError, ValueError):
    """A ticket's stored number encoding could not be interpreted."""


class FillerExhaustedError(DrawError):
    """No usable filler number remains for a prefix."""


class ResultValidationError(DrawError):
    """The assembled result breaks one or more structural invariants.

    Attributes
    ----------
    errors : list[str]
        Every violated invariant, in the order they were detected.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("Result validation failed: " + "; ".join(self.errors))


__all__ = [
    "DrawError",
    "InvalidDrawRequestError",
    "DrawAlreadyGeneratedError",
    "DrawTimeoutError",
    "TicketParseError",
    "FillerExhaustedError",
    "ResultValidationError",
]
