"""
Injectable time source.

Services never call ``datetime.now()`` themselves: request, approval,
allocation and transaction timestamps, and the date inside reference
numbers, all come from the Clock handed to the orchestrator.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware "now"."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """UTC calendar date of ``now()``; reference numbers use this day."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock for tests.  Time stands still until moved with ``advance``,
    ``tick`` or ``set_time``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new time."""
        self.advance(1)
        return self._current
