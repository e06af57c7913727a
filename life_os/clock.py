"""
Clock abstraction: wall time, monotonic time, and sleeps.

SystemClock is used in production. ManualClock is advanced by hand so
backoff windows and hold review times can be tested without waiting.
"""

import asyncio
import time
from datetime import UTC, datetime, timedelta


class Clock:
    """Interface for time sources used by the engine."""

    def now(self) -> datetime:
        raise NotImplementedError

    def monotonic(self) -> float:
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock(Clock):
    """Deterministic clock. Time only moves when advance() or set() is called."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 6, 12, 0, tzinfo=UTC)
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._mono += seconds

    def set(self, when: datetime) -> None:
        delta = (when - self._now).total_seconds()
        self._now = when
        self._mono += max(delta, 0.0)

    async def sleep(self, seconds: float) -> None:
        self.advance(seconds)
        await asyncio.sleep(0)


def isoformat(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def parse_instant(value) -> datetime | None:
    """Parse an ISO timestamp, assuming UTC when no offset is present."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
