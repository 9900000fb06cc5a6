from datetime import datetime, timedelta, timezone
from typing import Protocol


def to_utc_naive(dt: datetime) -> datetime:
    """Stored datetimes are naive UTC; aware inputs are converted."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Clock for tests and simulations; only moves when told to."""

    def __init__(self, start: datetime):
        self._now = to_utc_naive(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = to_utc_naive(value)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


system_clock = SystemClock()


def resolve(clock: Clock | None) -> Clock:
    return clock if clock is not None else system_clock
