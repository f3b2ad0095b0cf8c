"""Time sources for the lifecycle engine.

Nothing in the domain reads the system clock directly. Services take a
``Clock`` and pass the instant it returns into every aggregate method that
records or compares time.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Interface for anything that can tell the current time."""

    def now(self) -> datetime:
        """Return the current instant as a timezone-aware datetime."""
        ...


class SystemClock:
    """Clock backed by the system time, always in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock that returns a fixed instant until moved explicitly.

    Example:
        clock = FixedClock(datetime(2024, 1, 15, tzinfo=UTC))
        clock.advance(days=30)
    """

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        """Move the clock to a specific instant."""
        if instant.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._instant = instant

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """Move the clock forward and return the new instant.

        Args:
            delta: Amount to move forward
            **kwargs: Keyword arguments for ``timedelta`` when no delta is given
        """
        self._instant = self._instant + (delta if delta is not None else timedelta(**kwargs))
        return self._instant
