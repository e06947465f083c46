"""Structural checks run on a draw result before it may be persisted."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Sequence

from .errors import ResultValidationError
from .numbers import (
    NUMBERS_PER_SERIES,
    PAYOUT_RATE,
    RESULT_SIZE,
    SERIES_STARTS,
    WinningEntry,
    prefix_of,
    series_of,
)

logger = logging.getLogger(__name__)


def collect_violations(entries: Sequence[WinningEntry]) -> list[str]:
    """Return every violated invariant of ``entries`` (empty when valid)."""

    errors: list[str] = []
    if len(entries) != RESULT_SIZE:
        errors.append(f"Expected {RESULT_SIZE} numbers, got {len(entries)}")

    per_series: Counter[int] = Counter()
    prefixes: dict[int, set[int]] = {series: set() for series in SERIES_STARTS}
    for entry in entries:
        number = entry.number
        if len(number) != 4 or not number.isdigit():
            errors.append(f"Number {number!r} is not a 4-digit number")
            continue
        series = series_of(number)
        if series is None:
            errors.append(f"Number {number} is outside valid series ranges")
            continue
        per_series[series] += 1
        prefixes[series].add(prefix_of(number))
        if entry.quantity < 0:
            errors.append(f"Number {number} has negative quantity {entry.quantity}")
        if entry.payout != entry.quantity * PAYOUT_RATE:
            errors.append(
                f"Number {number} pays {entry.payout}, expected {entry.quantity * PAYOUT_RATE}"
            )

    for series in SERIES_STARTS:
        if per_series[series] != NUMBERS_PER_SERIES:
            errors.append(
                f"Series {series} has {per_series[series]} numbers, expected {NUMBERS_PER_SERIES}"
            )
        if len(prefixes[series]) != NUMBERS_PER_SERIES:
            errors.append(
                f"Series {series} has {len(prefixes[series])} unique prefixes, "
                f"expected {NUMBERS_PER_SERIES}"
            )

    duplicates = sorted(n for n, c in Counter(e.number for e in entries).items() if c > 1)
    if duplicates:
        errors.append(f"Duplicate numbers: {', '.join(duplicates)}")
    return errors


def validate_result(entries: Sequence[WinningEntry]) -> None:
    """Raise :class:`ResultValidationError` unless ``entries`` is a valid result."""

    errors = collect_violations(entries)
    if errors:
        logger.error(f"Result validation failed: {errors}")
        raise ResultValidationError(errors)
    logger.debug("Final result validation passed")


__all__ = ["collect_violations", "validate_result"]
