"""Time sources used for expiry, idle timeouts and rate limiting."""
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        """Return current time as epoch milliseconds."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to.

    Lets expiry and rate-limit behaviour be driven deterministically.
    """

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, ms: int) -> int:
        self._now += ms
        return self._now

    def set(self, ms: int) -> None:
        self._now = ms
