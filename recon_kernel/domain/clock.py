"""
Clock -- injectable source of "now".

Workflow, engine and service code take a ``Clock`` instead of calling
``datetime.now()``: count timestamps, session numbers and posting times are
then reproducible under test.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads wall time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Timezone-aware time source."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.  Time moves only through ``advance``, ``tick``
    and ``set_time``.
    """

    def __init__(self, start: datetime = DEFAULT_TEST_TIME):
        self._current = start

    def now(self) -> datetime:
        return self._current

    def set_time(self, when: datetime) -> None:
        self._current = when

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self._current
