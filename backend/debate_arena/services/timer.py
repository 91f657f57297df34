"""Round timer arithmetic.

The countdown is never stored as a running counter. Each turn persists when it
started and how many seconds it was given; everything else is derived from
those two values and the server clock.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from debate_arena.models.debate import STATUS_ACTIVE
from debate_arena.schemas.debate import DebateState


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands DateTime(timezone=True) columns back without tzinfo.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _seconds_left(state: DebateState, now: datetime) -> Optional[float]:
    if state.status != STATUS_ACTIVE or state.round_started_at is None:
        return None
    budget = state.round_time_remaining_seconds
    if budget is None:
        budget = state.round_time_limit_seconds
    elapsed = (as_utc(now) - as_utc(state.round_started_at)).total_seconds()
    return budget - elapsed


def remaining_seconds(state: DebateState, now: datetime) -> Optional[int]:
    """Whole seconds left in the current turn, or None when no turn is running."""
    left = _seconds_left(state, now)
    if left is None:
        return None
    return max(0, math.ceil(left))


def is_expired(state: DebateState, now: datetime) -> bool:
    left = _seconds_left(state, now)
    return left is not None and left <= 0


def arm(now: datetime, limit_seconds: int) -> Dict[str, Any]:
    return {
        "round_started_at": now,
        "round_time_remaining_seconds": limit_seconds,
    }


def clear() -> Dict[str, Any]:
    return {
        "round_started_at": None,
        "round_time_remaining_seconds": None,
    }
