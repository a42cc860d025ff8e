"""
Clock -- injectable time source.

Responsibility:
    Engine and service code never call ``datetime.now()`` or
    ``date.today()``.  "Today" is the upper bound of every retroactive
    cascade and the day the rollover seeds, so it comes from a Clock
    handed in by the caller.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads the wall
    clock.

Invariants enforced:
    - ``now()`` is timezone-aware.
    - ``today(tz)`` is the calendar day of ``now()`` as seen in ``tz``; a
      shop in Asia/Jakarta is already on the next day from 17:00 UTC.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """Time source passed to every service that needs "now" or "today"."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self, tz: tzinfo | None = None) -> date:
        """Calendar day of the current instant, in ``tz`` when given."""
        current = self.now()
        if tz is not None:
            current = current.astimezone(tz)
        return current.date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests and replays.

    ``now()`` only moves when ``advance()`` or ``advance_days()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        self._offset = timedelta(0)

    @classmethod
    def on_day(cls, day: date, hour: int = 12) -> "DeterministicClock":
        """Clock fixed at ``hour`` o'clock UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        """Move to the same time of day ``days`` later (e.g. the next business day)."""
        self._offset += timedelta(days=days)
