"""Sliding-window rate limiter.

Entries are process-local and never persisted: a restart resets every
counter, and separate processes do not share limits. Keys whose window
has fully elapsed are swept out, so one-off keys do not accumulate.
"""
import logging
from typing import Any, Callable, Optional
from dataclasses import dataclass, field

from .clock import Clock, SystemClock
from .events import EventType, SecurityEventLog, Severity

logger = logging.getLogger("clientguard.ratelimit")


@dataclass
class RateLimitEntry:
    request_timestamps: list[int] = field(default_factory=list)
    blocked: bool = False
    window_ms: int = 0

    def expires_at(self) -> int:
        """First instant at which every recorded request has left the window."""
        if not self.request_timestamps:
            return 0
        return self.request_timestamps[-1] + self.window_ms + 1


class RateLimiter:
    """Counts requests per caller-chosen key over a moving window."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        events: Optional[SecurityEventLog] = None,
        default_max_requests: int = 10,
        default_window_ms: int = 60_000,
    ):
        self._clock = clock or SystemClock()
        self._events = events
        self._max_requests = default_max_requests
        self._window_ms = default_window_ms
        self._entries: dict[str, RateLimitEntry] = {}
        self._next_sweep: Optional[int] = None

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self, entry: RateLimitEntry, now: int, window_ms: int) -> None:
        entry.request_timestamps = [
            t for t in entry.request_timestamps if now - t <= window_ms
        ]

    def _sweep(self, now: int) -> None:
        if self._next_sweep is None or now < self._next_sweep:
            return
        expired = [
            key for key, entry in self._entries.items()
            if entry.expires_at() <= now
        ]
        for key in expired:
            del self._entries[key]
        self._next_sweep = min(
            (entry.expires_at() for entry in self._entries.values()),
            default=None,
        )
        if expired:
            logger.debug("Swept %d idle rate limit keys", len(expired))

    def check(
        self,
        key: str,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
    ) -> bool:
        """Record a request for ``key`` if the window allows it.

        Returns:
            True if the request is allowed, False if the limit is reached.
            Refused requests are not counted.
        """
        max_requests = self._max_requests if max_requests is None else max_requests
        window_ms = self._window_ms if window_ms is None else window_ms
        now = self._clock.now()
        self._sweep(now)

        entry = self._entries.setdefault(key, RateLimitEntry())
        entry.window_ms = window_ms
        self._prune(entry, now, window_ms)

        if len(entry.request_timestamps) >= max_requests:
            if not entry.blocked:
                logger.info("Rate limit reached for key=%s", key)
            entry.blocked = True
            if self._events is not None:
                self._events.log_event(
                    EventType.RATE_LIMIT,
                    {"key": key, "max_requests": max_requests, "window_ms": window_ms},
                    Severity.MEDIUM,
                )
            return False

        entry.request_timestamps.append(now)
        entry.blocked = False
        expires = entry.expires_at()
        if self._next_sweep is None or expires < self._next_sweep:
            self._next_sweep = expires
        return True

    def run(
        self,
        action: Callable[[], Any],
        key: str,
        max_requests: int = 5,
        window_ms: Optional[int] = None,
    ) -> bool:
        """Call ``action`` only if ``key`` is under its limit.

        Returns:
            True if the action ran, False if it was refused.
        """
        if not self.check(key, max_requests, window_ms):
            return False
        action()
        return True

    def remaining(
        self,
        key: str,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
    ) -> int:
        """Requests still allowed for ``key`` in the current window."""
        max_requests = self._max_requests if max_requests is None else max_requests
        window_ms = self._window_ms if window_ms is None else window_ms
        entry = self._entries.get(key)
        if entry is None:
            return max_requests
        self._prune(entry, self._clock.now(), window_ms)
        if not entry.request_timestamps and not entry.blocked:
            del self._entries[key]
        return max(0, max_requests - len(entry.request_timestamps))

    def is_blocked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.blocked)

    def get_entry(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        if key is None:
            self._entries.clear()
            self._next_sweep = None
        else:
            self._entries.pop(key, None)
