"""
SecurityContext — One object owning every protection component.

Replaces process-wide singletons: each context has its own media, clock,
CSRF token, rate-limit counters and event log, so tests and separate
users never share state by accident.
"""
import logging
from typing import Any, Callable, Optional

from .clock import Clock, SystemClock
from .conf import SecurityConfig
from .crypto import EncryptionCodec, KeyDerivation
from .csrf import CSRFTokenManager
from .events import SecurityEvent, SecurityEventLog
from .privacy import PrivacyManager
from .ratelimit import RateLimiter
from .session import SessionManager
from .storage import KeyValueStorage, MemoryStorage
from .store import ProtectedStore
from .validation import InputValidator

logger = logging.getLogger("clientguard.context")


class SecurityContext:
    """Builds and wires the protection layer from a :class:`SecurityConfig`.

    Args:
        config: Validated settings.
        storage: Persistent medium (defaults to an in-memory one).
        session_storage: Volatile per-session medium for the CSRF token.
        clock: Time source (defaults to the wall clock).
        on_critical: Hook called with every critical security event.
    """

    def __init__(
        self,
        config: SecurityConfig,
        storage: Optional[KeyValueStorage] = None,
        session_storage: Optional[KeyValueStorage] = None,
        clock: Optional[Clock] = None,
        on_critical: Optional[Callable[[SecurityEvent], Any]] = None,
    ):
        self.config = config
        self.clock = clock or SystemClock()
        self.storage = storage if storage is not None else MemoryStorage()
        self.session_storage = (
            session_storage if session_storage is not None else MemoryStorage()
        )
        self.events = SecurityEventLog(
            clock=self.clock,
            max_events=config.max_events,
            on_critical=on_critical,
            fingerprint=config.fingerprint,
        )
        self.keys = KeyDerivation(
            config.app_secret,
            config.fingerprint,
            clock=self.clock,
            bucket_seconds=config.key_bucket_seconds,
        )
        self.codec = EncryptionCodec(
            self.keys,
            cipher_backend=config.cipher_backend,
            grace_buckets=config.grace_buckets,
            events=self.events,
        )
        self.csrf = CSRFTokenManager(self.session_storage)
        self.store = ProtectedStore(
            self.storage,
            self.codec,
            self.csrf,
            self.events,
            clock=self.clock,
            session_timeout=config.session_timeout,
            enable_encryption=config.enable_encryption,
        )
        self.rate_limiter = RateLimiter(
            clock=self.clock,
            events=self.events,
            default_max_requests=config.rate_limit_max_requests,
            default_window_ms=config.rate_limit_window_ms,
        )
        self.sessions = SessionManager(
            self.store,
            self.csrf,
            self.events,
            clock=self.clock,
            idle_timeout=config.idle_timeout,
            limiter=self.rate_limiter,
            max_login_attempts=config.max_login_attempts,
        )
        self.validator = InputValidator(self.csrf, self.events)
        self.privacy = PrivacyManager(
            self.store,
            self.events,
            clock=self.clock,
            tracked_keys=config.tracked_keys,
        )
        logger.debug(
            "Security context ready: encryption=%s cipher=%s",
            config.enable_encryption, config.cipher_backend,
        )

    @classmethod
    def from_env(cls, **kwargs) -> "SecurityContext":
        """Create a context from ``SecurityConfig.from_env()``."""
        return cls(SecurityConfig.from_env(), **kwargs)
