"""
Clock -- injectable time source.

Services stamp history entries, assignment rows and transfer requests from
an injected Clock and never call ``datetime.now()`` directly, so tests can
pin and advance time (transfer expiry, history ordering).
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_DEFAULT_START = datetime(2024, 1, 1, 8, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of aware datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Wall clock, UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves through ``set_time()``, ``advance()`` or ``tick()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or _DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance()
        return self._current
