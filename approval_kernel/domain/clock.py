"""
Clock -- Injectable time source.

Responsibility:
    Lets domain, engine and service code obtain "now" without calling
    ``datetime.now()`` directly, so decision timestamps and ballot
    resolution times are reproducible in tests.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Invariants enforced:
    - Every returned datetime is timezone-aware UTC.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Services receive a Clock by constructor injection; the progression
    engine receives the decision timestamp as an argument instead.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current UTC time."""
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._base = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._offset = timedelta()

    def now(self) -> datetime:
        return (self._base + self._offset).astimezone(timezone.utc)

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)
