"""
SessionManager — Login sessions on top of the protected store.

States: no session -> active -> expired/destroyed -> no session.

The session record is stored under one well-known key. Two clocks
apply to it and are kept separate on purpose:
- record freshness, the store's ``timestamp`` check (``session_timeout``);
- user idleness, ``last_activity`` checked here (``idle_timeout``).
"""
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, ValidationError

from .clock import Clock, SystemClock
from .conf import SESSION_KEY, SESSION_TIMEOUT
from .csrf import CSRFTokenManager
from .events import EventType, SecurityEventLog, Severity
from .ratelimit import RateLimiter
from .store import ProtectedStore

logger = logging.getLogger("clientguard.session")

# Failed logins are counted over this window.
_LOGIN_WINDOW_MS = 15 * 60 * 1000


class SessionRecord(BaseModel):
    """Stored value of the session key."""

    user_id: str
    token: str
    created_at: int
    last_activity: int
    csrf_token: str


class SessionManager:
    """Creates, refreshes and destroys the login session."""

    def __init__(
        self,
        store: ProtectedStore,
        csrf: CSRFTokenManager,
        events: SecurityEventLog,
        clock: Optional[Clock] = None,
        idle_timeout: int = SESSION_TIMEOUT,
        limiter: Optional[RateLimiter] = None,
        max_login_attempts: int = 5,
        session_key: str = SESSION_KEY,
    ):
        self._store = store
        self._csrf = csrf
        self._events = events
        self._clock = clock or SystemClock()
        self._idle_ms = idle_timeout * 1000
        self._limiter = limiter
        self._max_login_attempts = max_login_attempts
        self._key = session_key

    def create_session(self, user_id: str) -> str:
        """Start a session for ``user_id`` and return its session token.

        Rotates the CSRF token, so records bound to the previous token
        stop being readable.
        """
        now = self._clock.now()
        record = SessionRecord(
            user_id=user_id,
            token=secrets.token_hex(16),
            created_at=now,
            last_activity=now,
            csrf_token=self._csrf.generate_token(),
        )
        self._store.set(self._key, record.model_dump())
        self._events.log_event(
            EventType.LOGIN_ATTEMPT,
            {"user_id": user_id, "success": True},
            Severity.LOW,
        )
        logger.info("Session created for user=%s", user_id)
        return record.token

    def get_session(self) -> Optional[SessionRecord]:
        data = self._store.get(self._key)
        if data is None:
            return None
        try:
            return SessionRecord.model_validate(data)
        except ValidationError:
            logger.warning("Discarding malformed session record")
            self._store.remove(self._key)
            return None

    def validate_session(self) -> bool:
        """Check the session and refresh its activity time.

        Returns:
            True while the session exists and has not been idle for longer
            than the idle timeout. An idle session is destroyed.
        """
        session = self.get_session()
        if session is None:
            return False

        now = self._clock.now()
        if now - session.last_activity > self._idle_ms:
            logger.info("Session idle timeout for user=%s", session.user_id)
            self.destroy_session()
            return False

        session.last_activity = now
        self._store.set(self._key, session.model_dump())
        return True

    def destroy_session(self) -> None:
        self._store.remove(self._key)
        self._csrf.clear_token()
        self._events.log_event(
            EventType.DATA_ACCESS,
            {"action": "session_destroyed"},
            Severity.LOW,
        )
        logger.info("Session destroyed")

    def get_session_user(self) -> Optional[str]:
        session = self.get_session()
        return session.user_id if session else None

    def record_failed_login(self, user_id: str) -> bool:
        """Count a failed login for ``user_id``.

        Returns:
            False once ``max_login_attempts`` failures happened within the
            login window, True otherwise.
        """
        self._events.log_event(
            EventType.LOGIN_ATTEMPT,
            {"user_id": user_id, "success": False},
            Severity.MEDIUM,
        )
        if self._limiter is None:
            return True
        allowed = self._limiter.check(
            f"login_{user_id}", self._max_login_attempts, _LOGIN_WINDOW_MS
        )
        if not allowed:
            self._events.log_event(
                EventType.LOGIN_ATTEMPT,
                {"user_id": user_id, "reason": "too_many_attempts"},
                Severity.HIGH,
            )
        return allowed
