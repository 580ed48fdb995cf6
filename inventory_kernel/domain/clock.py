"""
Clock -- injectable time source.

Responsibility:
    Services and the facade take a ``Clock`` instead of calling
    ``datetime.now()``: it supplies the default transaction date, the
    ``created_at`` milliseconds and request resolution timestamps.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place the process reads
    wall-clock time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Contract:
        ``now()`` returns a timezone-aware ``datetime``; ``today()`` and
        ``now_millis()`` are derived from it.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date used when a write omits ``date``."""
        return self.now().date()

    def now_millis(self) -> int:
        """Milliseconds since the epoch, the ledger's ``created_at`` unit."""
        return int(self.now().astimezone(timezone.utc).timestamp() * 1000)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Repeated calls return the same instant until ``advance()``; the ledger
    store still hands out strictly increasing ``created_at`` values.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, days: int = 0, seconds: int = 0) -> None:
        self._now += timedelta(days=days, seconds=seconds)
