"""Completion of the three number series with filler numbers."""

from __future__ import annotations

import logging
import random
from typing import Iterable, Optional, Sequence

from .aggregator import SalesTotals
from .errors import FillerExhaustedError
from .numbers import (
    SERIES_STARTS,
    WinningEntry,
    prefix_of,
    series_of,
    series_prefixes,
)

logger = logging.getLogger(__name__)


class SeriesFiller:
    """Fill every prefix lacking a winner and order the final 30 entries.

    Parameters
    ----------
    rng : Optional[random.Random], default: None
        Source of randomness; pass a seeded instance for reproducible draws.
    max_tries : int, default: 150
        Random candidates tried per prefix before scanning suffixes 00-99.
    allow_repeats_threshold : int, default: 1000
        When a series sold more units than this, purchased numbers that
        survived the pre-screen may be used as filler.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        *,
        max_tries: int = 150,
        allow_repeats_threshold: int = 1000,
    ) -> None:
        if max_tries <= 0:
            raise ValueError("max_tries must be positive")
        self._rng = rng or random.Random()
        self._max_tries = max_tries
        self._allow_repeats_threshold = allow_repeats_threshold

    def fill(
        self,
        winners: Sequence[WinningEntry],
        totals: SalesTotals,
        excluded: Iterable[str] = (),
    ) -> list[WinningEntry]:
        """Return the complete result: ``winners`` plus filler, interleaved."""

        purchased = totals.purchased_numbers
        blocked = frozenset(excluded)
        taken = {w.number for w in winners}
        buckets: dict[int, list[WinningEntry]] = {
            series: [w for w in winners if series_of(w.number) == series]
            for series in SERIES_STARTS
        }

        for series in SERIES_STARTS:
            allow_repeats = totals.series_units(series) > self._allow_repeats_threshold
            covered = {prefix_of(w.number) for w in buckets[series]}
            missing = [p for p in series_prefixes(series) if p not in covered]
            self._rng.shuffle(missing)
            for prefix in missing:
                number = self._generate(prefix, purchased, blocked, taken, allow_repeats)
                taken.add(number)
                buckets[series].append(WinningEntry.filler(number))
            logger.debug(
                f"Series {series}: {len(missing)} filler numbers, allow_repeats={allow_repeats}"
            )

        return self.interleave(buckets)

    def _generate(
        self,
        prefix: int,
        purchased: set[str],
        blocked: frozenset[str],
        taken: set[str],
        allow_repeats: bool,
    ) -> str:
        def usable(candidate: str) -> bool:
            if candidate in taken:
                return False
            if candidate in purchased:
                return allow_repeats and candidate not in blocked
            return True

        for _ in range(self._max_tries):
            candidate = f"{prefix:02d}{self._rng.randrange(100):02d}"
            if usable(candidate):
                return candidate

        logger.warning(f"Random filler exhausted for prefix {prefix}, scanning suffixes")
        for suffix in range(100):
            candidate = f"{prefix:02d}{suffix:02d}"
            if usable(candidate):
                return candidate
        raise FillerExhaustedError(f"No filler number available for prefix {prefix}")

    def interleave(self, buckets: dict[int, list[WinningEntry]]) -> list[WinningEntry]:
        """Merge the series so no two consecutive entries share a series.

        At each step the series with the most entries left (other than the
        previous one) goes next; ties are broken by the RNG.
        """

        queues = {series: list(entries) for series, entries in buckets.items()}
        output: list[WinningEntry] = []
        last: Optional[int] = None
        while any(queues.values()):
            choices = [s for s, q in queues.items() if q and s != last]
            if not choices:
                choices = [s for s, q in queues.items() if q]
            most = max(len(queues[s]) for s in choices)
            pick = self._rng.choice([s for s in choices if len(queues[s]) == most])
            output.append(queues[pick].pop(0))
            last = pick
        return _untangle(output)


def _untangle(entries: list[WinningEntry]) -> list[WinningEntry]:
    """Swap entries forward to break up same-series neighbours where possible."""

    out = list(entries)
    for i in range(1, len(out)):
        current = series_of(out[i].number)
        if current != series_of(out[i - 1].number):
            continue
        for j in range(i + 1, len(out)):
            candidate = series_of(out[j].number)
            if candidate == current:
                continue
            left_ok = series_of(out[j - 1].number) != current or j - 1 == i
            right_ok = j + 1 >= len(out) or series_of(out[j + 1].number) != current
            if left_ok and right_ok:
                out[i], out[j] = out[j], out[i]
                break
    return out


__all__ = ["SeriesFiller"]
