"""
Injectable time source.

DecisionService, BalanceLedger and AuditRecorder take their timestamps
(decided_at, final_decided_at, applied_at, occurred_at) from the Clock
they are given instead of reading the wall clock, so a test can replay a
whole approval pipeline with exact, repeatable times.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_START = datetime(2025, 3, 3, 9, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Manually driven clock for tests and demos.

    Time stands still until ``tick()``, ``advance()`` or ``set_time()``
    moves it; ``tick()`` steps by ``step`` (one second by default).
    """

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        start = start or DEFAULT_START
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start.astimezone(timezone.utc)
        self._step = step

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("set_time needs a timezone-aware datetime")
        self._current = time.astimezone(timezone.utc)

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move forward one step and return the new time."""
        self._current += self._step
        return self._current
