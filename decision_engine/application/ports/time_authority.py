"""Time authority port.

Services that need the current time inject a TimeAuthorityProtocol instead
of calling datetime.now() directly, so deadline-driven logic is testable
with a controllable clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class TimeAuthorityProtocol(ABC):
    """Abstract interface for time authority."""

    @abstractmethod
    def utcnow(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Return a monotonic clock value in seconds for measuring durations."""
        ...
