"""UTC time helpers and the deterministic simulation clock."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

DEFAULT_EPOCH = datetime(2024, 1, 2, 9, 0, tzinfo=UTC)  # market open


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class SimulationClock:
    """Simulated time: advances only when the tick loop says so.

    Seeded runs stay reproducible because nothing reads wall time.
    """

    def __init__(self, start: datetime = DEFAULT_EPOCH) -> None:
        self._start = to_utc(start)
        self._now = self._start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        if seconds < 0:
            raise ValueError(f"Cannot move the clock backwards: {seconds}")
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def reset(self) -> None:
        self._now = self._start
