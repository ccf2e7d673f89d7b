"""Shared "last activity" marker between the tracker and the heartbeat."""

from __future__ import annotations

from datetime import datetime

from devlogspace.clock import Clock, utc_now


class ActivityMarker:
    """Timestamp of the most recent tool invocation in this process.

    The tool tracker touches it on every call; the heartbeat monitor reads it
    to tell active time from idle time and advances it after recording a pause.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._last = clock()

    @property
    def last(self) -> datetime:
        return self._last

    def touch(self, when: datetime | None = None) -> datetime:
        self._last = when or self._clock()
        return self._last
