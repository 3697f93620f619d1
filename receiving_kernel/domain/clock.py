"""
Injectable time source.

Services stamp ``created_at``, ``inspection_started_at`` and
``inspection_completed_at`` from a ``Clock`` so that inspection latency is
reproducible in tests.  ``SystemClock`` is the only place that reads the
wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` is stable between calls; ``advance()`` moves it forward by a
    number of seconds or a ``timedelta``.
    """

    def __init__(self, start: datetime = DEFAULT_TEST_TIME):
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, amount: float | timedelta = 1) -> datetime:
        """Move forward and return the new time."""
        step = amount if isinstance(amount, timedelta) else timedelta(seconds=amount)
        if step < timedelta(0):
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += step
        return self._current
