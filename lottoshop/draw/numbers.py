"""Ticket number parsing and series helpers."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from .errors import TicketParseError

PAYOUT_RATE = 180
"""Points paid out per winning unit of quantity."""

SERIES_STARTS: tuple[int, ...] = (10, 30, 50)
"""First prefix of each number series; every series spans ten prefixes."""

NUMBERS_PER_SERIES = 10
RESULT_SIZE = NUMBERS_PER_SERIES * len(SERIES_STARTS)

_SEPARATORS = re.compile(r"[\s\-_/.]")


@dataclass(frozen=True)
class NumberEntry:
    """One purchased number and its quantity, in stored order."""

    number: str
    quantity: int


@dataclass(frozen=True)
class WinningEntry:
    """A number in the final result.

    Attributes
    ----------
    number : str
        Canonical 4-digit number.
    quantity : int
        Purchased units honoured for this number; ``0`` for filler.
    payout : int
        Always ``quantity * PAYOUT_RATE``.
    """

    number: str
    quantity: int
    payout: int

    @classmethod
    def for_quantity(cls, number: str, quantity: int) -> "WinningEntry":
        return cls(number=number, quantity=quantity, payout=quantity * PAYOUT_RATE)

    @classmethod
    def filler(cls, number: str) -> "WinningEntry":
        return cls(number=number, quantity=0, payout=0)

    def to_dict(self) -> dict[str, Any]:
        return {"number": self.number, "quantity": self.quantity, "payout": self.payout}


def normalize_number(raw: Any) -> str:
    """Return ``raw`` as a canonical 4-digit string with separators removed.

    Raises
    ------
    TicketParseError
        If the cleaned value is not exactly four digits.
    """

    if raw is None or isinstance(raw, bool):
        raise TicketParseError(f"Invalid ticket number: {raw!r}")
    cleaned = _SEPARATORS.sub("", str(raw).strip())
    if len(cleaned) != 4 or not cleaned.isdigit():
        raise TicketParseError(f"Invalid ticket number: {raw!r}")
    return cleaned


def _parse_quantity(raw: Any) -> int:
    if raw is None or raw == "":
        return 0
    if isinstance(raw, bool):
        raise TicketParseError(f"Invalid quantity: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise TicketParseError(f"Invalid quantity: {raw!r}") from exc
    if not math.isfinite(value) or value != int(value) or value < 0:
        raise TicketParseError(f"Invalid quantity: {raw!r}")
    return int(value)


def _parse_pair(token: str) -> NumberEntry:
    number, sep, quantity = token.partition(":")
    return NumberEntry(
        number=normalize_number(number),
        quantity=_parse_quantity(quantity.strip()) if sep else 0,
    )


def _parse_item(item: Any) -> NumberEntry:
    if isinstance(item, dict):
        raw_number = item.get("ticketNumber", item.get("number"))
        return NumberEntry(
            number=normalize_number(raw_number),
            quantity=_parse_quantity(item.get("quantity")),
        )
    if isinstance(item, (str, int)):
        return _parse_pair(str(item))
    raise TicketParseError(f"Unsupported ticket entry: {item!r}")


def parse_number_entries(raw: Any) -> list[NumberEntry]:
    """Parse any stored ticket-number encoding into ordered entries.

    Accepted encodings are a list of ``{"ticketNumber", "quantity"}`` objects,
    the same list serialized as JSON text, a comma separated ``"10-07:2"``
    pair string, or a plain number string.

    Parameters
    ----------
    raw : Any
        Value of :attr:`Ticket.ticket_numbers`.

    Returns
    -------
    list[NumberEntry]
        Entries in stored order; duplicates are kept.

    Raises
    ------
    TicketParseError
        If any part of ``raw`` cannot be interpreted.
    """

    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [_parse_item(item) for item in raw]
    if isinstance(raw, dict):
        return [_parse_item(raw)]
    if isinstance(raw, int) and not isinstance(raw, bool):
        return [_parse_pair(str(raw))]
    if not isinstance(raw, str):
        raise TicketParseError(f"Unsupported ticket encoding: {type(raw).__name__}")

    text = raw.strip()
    if not text:
        return []
    if text.startswith("[") or text.startswith("{"):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TicketParseError(f"Malformed JSON ticket numbers: {exc}") from exc
        return parse_number_entries(decoded)
    return [_parse_pair(token.strip()) for token in text.split(",") if token.strip()]


def prefix_of(number: str) -> int:
    """Return the first two digits of ``number`` as an integer."""
    return int(number[:2])


def series_of(number: str) -> Optional[int]:
    """Return the series start (10, 30 or 50) for ``number``, or ``None``."""

    if len(number) < 2 or not number[:2].isdigit():
        return None
    prefix = prefix_of(number)
    for start in SERIES_STARTS:
        if start <= prefix < start + NUMBERS_PER_SERIES:
            return start
    return None


def series_prefixes(series: int) -> range:
    """Return the ten prefixes that make up ``series``."""

    if series not in SERIES_STARTS:
        raise ValueError(f"Unknown series: {series}")
    return range(series, series + NUMBERS_PER_SERIES)


__all__ = [
    "PAYOUT_RATE",
    "SERIES_STARTS",
    "NUMBERS_PER_SERIES",
    "RESULT_SIZE",
    "NumberEntry",
    "WinningEntry",
    "normalize_number",
    "parse_number_entries",
    "prefix_of",
    "series_of",
    "series_prefixes",
]
