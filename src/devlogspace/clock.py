"""Time helpers shared by the lock and session layers.

All stored timestamps are timezone-aware UTC. Components take an injectable
``Clock`` so lease and pause arithmetic can be driven deterministically.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Annotated

from pydantic import AfterValidator

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def round_minutes(delta: timedelta) -> int:
    """Whole minutes in delta, rounding halves up (x.5 -> x+1)."""
    return math.floor(delta.total_seconds() / 60 + 0.5)
