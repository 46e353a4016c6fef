"""
Security Event Log — Append-only, capped audit trail of security events.

Every component writes here; an operator dashboard reads it back with
``get_events()`` and ``summary()``. The log is process-local: events do
not aggregate across processes and are lost on restart.

Security Note:
    Event details must never carry plaintext values, tokens or secrets.
"""
import copy
import logging
from enum import Enum
from typing import Any, Callable, Optional, Union
from collections import deque
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .clock import Clock, SystemClock
from .conf import MAX_EVENTS

logger = logging.getLogger("clientguard.events")


class EventType(str, Enum):
    LOGIN_ATTEMPT = "login_attempt"
    INPUT_VALIDATION = "input_validation"
    RATE_LIMIT = "rate_limit"
    DATA_ACCESS = "data_access"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    CSRF_VIOLATION = "csrf_violation"
    ENCRYPTION_FAILURE = "encryption_failure"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityEvent(BaseModel):
    """Immutable record of a security-relevant occurrence."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    timestamp: int
    details: dict[str, Any] = Field(default_factory=dict)
    severity: Severity = Severity.LOW
    fingerprint: Optional[str] = None


def _freeze_details(details: Any) -> dict[str, Any]:
    """Detach caller-owned details; non-mapping payloads become a message."""
    if details is None:
        return {}
    if isinstance(details, Mapping):
        return copy.deepcopy(dict(details))
    return {"message": copy.deepcopy(details)}


class SecurityEventLog:
    """Fixed-capacity ring of :class:`SecurityEvent`.

    Oldest events are dropped silently once ``max_events`` is reached.
    ``critical`` events are handed to ``on_critical``, the hook the
    hosting application wires to its alerting.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        max_events: int = MAX_EVENTS,
        on_critical: Optional[Callable[[SecurityEvent], Any]] = None,
        fingerprint: Optional[str] = None,
    ):
        self._clock = clock or SystemClock()
        self._events: deque[SecurityEvent] = deque(maxlen=max_events)
        self._on_critical = on_critical
        self._fingerprint = fingerprint

    @property
    def max_events(self) -> int:
        return self._events.maxlen or 0

    def __len__(self) -> int:
        return len(self._events)

    def log_event(
        self,
        type: Union[EventType, str],
        details: Any = None,
        severity: Union[Severity, str] = Severity.LOW,
    ) -> SecurityEvent:
        """Append an event and return a copy of it.

        ``details`` is deep-copied; a non-mapping value is stored as
        ``{"message": details}``.
        """
        event = SecurityEvent(
            type=EventType(type),
            timestamp=self._clock.now(),
            details=_freeze_details(details),
            severity=Severity(severity),
            fingerprint=self._fingerprint,
        )
        self._events.append(event)
        event = event.model_copy(deep=True)

        if event.severity is Severity.HIGH:
            logger.warning(
                "Security event: type=%s details=%s",
                event.type.value, event.details,
            )
        elif event.severity is Severity.CRITICAL:
            logger.error(
                "CRITICAL security event: type=%s details=%s",
                event.type.value, event.details,
            )
            self._alert(event)
        return event

    def _alert(self, event: SecurityEvent) -> None:
        if self._on_critical is None:
            return
        try:
            self._on_critical(event)
        except Exception:
            logger.exception(
                "Critical alert hook failed for event type=%s", event.type.value
            )

    def get_events(
        self, type: Union[EventType, str, None] = None
    ) -> list[SecurityEvent]:
        """Return events oldest first, optionally filtered by type."""
        if type is None:
            return [e.model_copy(deep=True) for e in self._events]
        wanted = EventType(type)
        return [
            e.model_copy(deep=True) for e in self._events if e.type is wanted
        ]

    def clear_events(self) -> None:
        self._events.clear()

    def summary(self) -> dict[str, int]:
        """Count events per severity, for dashboards."""
        counts = {s.value: 0 for s in Severity}
        for event in self._events:
            counts[event.severity.value] += 1
        counts["total"] = len(self._events)
        return counts
