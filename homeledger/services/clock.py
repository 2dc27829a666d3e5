"""
Clock collaborator.

Everything that needs "now" or "today" receives a Clock, so tests can
pin time to a fixed instant.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Always returns the instant it was built with."""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance_to(self, instant: datetime) -> None:
        self._instant = instant
