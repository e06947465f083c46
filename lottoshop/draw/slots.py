"""Draw slot labels: normalization and the business-day slot calendar."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Iterable, Optional

from .errors import InvalidDrawRequestError

SLOT_MINUTES = 15

_LABEL_RE = re.compile(r"^(\d{1,2})(?:[:.](\d{1,2}))?\s*(AM|PM)?$")


def _format(minutes: int) -> str:
    hour24, minute = divmod(minutes, 60)
    period = "AM" if hour24 < 12 else "PM"
    hour12 = hour24 % 12 or 12
    return f"{hour12:02d}:{minute:02d} {period}"


def _to_minutes(raw: str) -> Optional[int]:
    text = raw.replace('"', "").replace("'", "").strip().upper()
    match = _LABEL_RE.match(text)
    if match is None:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    period = match.group(3)
    if minute > 59:
        return None
    if period is None:
        if hour > 23:
            return None
        return hour * 60 + minute
    if not 1 <= hour <= 12:
        return None
    hour24 = hour % 12 + (12 if period == "PM" else 0)
    return hour24 * 60 + minute


def try_normalize_slot(raw: Any) -> Optional[str]:
    """Return the canonical ``"HH:MM AM"`` label for ``raw`` or ``None``."""

    if raw is None:
        return None
    minutes = _to_minutes(str(raw))
    if minutes is None:
        return None
    return _format(minutes)


def normalize_slot(raw: Any) -> str:
    """Normalize a textual slot such as ``"2:00 pm"`` to ``"02:00 PM"``.

    Raises
    ------
    InvalidDrawRequestError
        If ``raw`` is empty or not a recognizable time of day.
    """

    if raw is None or not str(raw).strip():
        raise InvalidDrawRequestError("drawTime is required")
    label = try_normalize_slot(raw)
    if label is None:
        raise InvalidDrawRequestError(f"Unrecognized draw time: {raw!r}")
    return label


def slot_minutes(label: str) -> int:
    """Minutes after midnight represented by a slot label."""

    minutes = _to_minutes(label)
    if minutes is None:
        raise InvalidDrawRequestError(f"Unrecognized draw time: {label!r}")
    return minutes


def business_slots(first: str = "09:00 AM", last: str = "11:45 PM") -> list[str]:
    """Return every slot label from ``first`` to ``last`` inclusive."""

    start, end = slot_minutes(first), slot_minutes(last)
    return [_format(m) for m in range(start, end + 1, SLOT_MINUTES)]


def is_business_slot(label: str, first: str = "09:00 AM", last: str = "11:45 PM") -> bool:
    minutes = slot_minutes(label)
    return (
        minutes % SLOT_MINUTES == 0
        and slot_minutes(first) <= minutes <= slot_minutes(last)
    )


def slot_at(moment: datetime) -> Optional[str]:
    """Return the slot label if ``moment`` falls on a slot boundary minute."""

    if moment.minute % SLOT_MINUTES:
        return None
    return _format(moment.hour * 60 + moment.minute)


def parse_draw_times(raw: Any) -> set[str]:
    """Normalize the slot list stored on a ticket.

    ``raw`` may be a list of labels, its JSON text, or a comma separated
    string. Labels that cannot be normalized are ignored.
    """

    values: Iterable[Any]
    if raw is None:
        return set()
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = text.strip("[]").split(",")
            values = decoded if isinstance(decoded, list) else [decoded]
        else:
            values = text.split(",")
    elif isinstance(raw, (list, tuple, set)):
        values = raw
    else:
        values = [raw]
    labels = (try_normalize_slot(value) for value in values)
    return {label for label in labels if label is not None}


__all__ = [
    "SLOT_MINUTES",
    "business_slots",
    "is_business_slot",
    "normalize_slot",
    "parse_draw_times",
    "slot_at",
    "slot_minutes",
    "try_normalize_slot",
]
