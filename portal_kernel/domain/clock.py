"""
Clock -- Injected "now" for the payment lifecycle.

Responsibility:
    Supplies the current time to the state machine (``payment_date`` and
    ``invoice_attached_at`` stamping) and to the overdue deriver, so that
    neither ever calls ``datetime.now()`` or ``date.today()`` itself.

Architecture position:
    Kernel > Domain -- pure value layer.  ``SystemClock`` is the one
    sanctioned I/O boundary for time.

Failure modes:
    - SequentialClock raises ValueError when built from an empty list.

Audit relevance:
    Every stamped date on a payment (paid date, invoice attach time) traces
    back to an injected Clock, which makes scenario replays deterministic.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Iterator


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Components that need the current time receive a Clock through
        their constructor.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` is the calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def now_utc(self) -> datetime:
        """Get the current time normalized to UTC."""
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """Calendar date of ``now()``; time of day is dropped."""
        return self.now().date()


class SystemClock(Clock):
    """Production clock reading the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``,
    ``advance_days()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        if self._fixed_time.tzinfo is None:
            self._fixed_time = self._fixed_time.replace(tzinfo=timezone.utc)
        self._advance_seconds = 0

    @classmethod
    def on(cls, day: date, hour: int = 12) -> "DeterministicClock":
        """Clock pinned to ``hour``:00 UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        if time.tzinfo is None:
            time = time.replace(tzinfo=timezone.utc)
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def advance_days(self, days: int = 1) -> None:
        self.advance(days * 86400)


class SequentialClock(Clock):
    """
    Clock that returns times from a predefined list, in order.

    After exhaustion the last value repeats.
    """

    def __init__(self, times: list[datetime]):
        if not times:
            raise ValueError("SequentialClock requires at least one time")
        self._times: Iterator[datetime] = iter(times)
        self._last_time: datetime = times[0]
        self._exhausted = False

    def now(self) -> datetime:
        if self._exhausted:
            return self._last_time
        try:
            self._last_time = next(self._times)
        except StopIteration:
            self._exhausted = True
        return self._last_time
