"""
Injectable time source.

Services never read the wall clock themselves.  "Inspection date is not in
the future", certificate validity and draft age are all computed from the
Clock handed to the service, so tests can pin or move time explicitly.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


def ensure_utc(value: datetime | None) -> datetime | None:
    """Normalise to aware UTC; SQLite returns stored timestamps naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """Source of the current instant, always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date in UTC; inspection and certificate dates use it."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when told to: ``set_time`` jumps, ``advance`` and
    ``advance_days`` step forward, ``tick`` steps one second and returns
    the new instant.
    """

    DEFAULT_START = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current += timedelta(days=days)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current
