"""Environment driven settings for the draw settlement engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc
    if value <= 0:
        raise ValueError(f"Environment variable '{name}' must be positive")
    return value


def _bool_env(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Environment variable '{name}' must be a boolean")


@dataclass(frozen=True)
class DrawSettings:
    """Tunables shared by every draw run.

    Attributes
    ----------
    timezone : str
        IANA timezone in which draw dates and slots are interpreted.
    lock_timeout_seconds : int
        Age after which an in-process draw lock is considered stale.
    max_execution_seconds : int
        Wall-clock ceiling for one draw run; past it the run aborts.
    batch_size : int
        Number of ticket rows loaded per aggregation batch.
    filler_max_tries : int
        Random attempts per prefix before the deterministic suffix scan.
    allow_repeats_threshold : int
        Purchased units in a series above which purchased numbers may be
        reused as filler.
    first_slot : str
        Label of the first draw slot of the business day.
    last_slot : str
        Label of the last draw slot of the business day.
    partial_payouts : bool
        Honour a winner only up to the remaining capacity instead of
        skipping numbers that do not fit.
    """

    timezone: str = "Asia/Kolkata"
    lock_timeout_seconds: int = 60
    max_execution_seconds: int = 25
    batch_size: int = 1000
    filler_max_tries: int = 150
    allow_repeats_threshold: int = 1000
    first_slot: str = "09:00 AM"
    last_slot: str = "11:45 PM"
    partial_payouts: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DrawSettings":
        """Build settings from ``env`` (``os.environ`` after loading ``.env``)."""

        if env is None:
            load_dotenv()
            env = os.environ
        defaults = cls()
        return cls(
            timezone=env.get("DRAW_TIMEZONE") or defaults.timezone,
            lock_timeout_seconds=_int_env(
                env, "DRAW_LOCK_TIMEOUT_SECONDS", defaults.lock_timeout_seconds
            ),
            max_execution_seconds=_int_env(
                env, "DRAW_MAX_EXECUTION_SECONDS", defaults.max_execution_seconds
            ),
            batch_size=_int_env(env, "DRAW_BATCH_SIZE", defaults.batch_size),
            filler_max_tries=_int_env(
                env, "DRAW_FILLER_MAX_TRIES", defaults.filler_max_tries
            ),
            allow_repeats_threshold=_int_env(
                env, "DRAW_ALLOW_REPEATS_THRESHOLD", defaults.allow_repeats_threshold
            ),
            first_slot=env.get("DRAW_FIRST_SLOT") or defaults.first_slot,
            last_slot=env.get("DRAW_LAST_SLOT") or defaults.last_slot,
            partial_payouts=_bool_env(env, "DRAW_PARTIAL_PAYOUTS", defaults.partial_payouts),
        )


__all__ = ["DrawSettings"]
