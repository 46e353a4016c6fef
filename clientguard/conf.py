"""
ClientGuard Configuration — Application secret loading and validated settings.

Reads settings from environment variables in the format:
    CLIENTGUARD_APP_SECRET = <application secret, at least 16 chars>
    CLIENTGUARD_FINGERPRINT = <environment fingerprint>
    CLIENTGUARD_SESSION_TIMEOUT = <seconds>

Security Note:
    Never log the application secret or derived keys. Only log key
    buckets, key names and settings that carry no secret.
"""
import os
import base64
import secrets
import logging
import platform
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("clientguard.conf")

SESSION_KEY = "user_session"
BEHAVIOR_KEY = "user_behavior"
PREFERENCES_KEY = "user_preferences"
CSRF_TOKEN_KEY = "csrf_token"

# Keys removed by the privacy "delete all data" operation.
TRACKED_KEYS = (
    BEHAVIOR_KEY,
    PREFERENCES_KEY,
    SESSION_KEY,
    "onboarding_complete",
    "user_profile",
    "user_email",
)

SESSION_TIMEOUT = 24 * 60 * 60  # seconds
KEY_BUCKET_SECONDS = 60 * 60
MAX_EVENTS = 1000

_ENV_PREFIX = "CLIENTGUARD_"


def default_fingerprint() -> str:
    """Build an environment fingerprint from the host platform.

    Stands in for the browser user agent: stable for one environment,
    different across machines and interpreters.
    """
    return "|".join((
        platform.system(),
        platform.machine(),
        platform.node(),
        platform.python_implementation(),
        platform.python_version(),
    ))


def generate_app_secret() -> str:
    """Generate a random 32-byte application secret as base64 string.

    This is a utility for operators to generate new secrets.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class SecurityConfig(BaseModel):
    """Validated protection layer configuration."""

    app_secret: str = Field(min_length=16)
    fingerprint: str = Field(default_factory=default_fingerprint)
    enable_encryption: bool = True
    cipher_backend: str = Field(default="aesgcm")
    session_timeout: int = Field(default=SESSION_TIMEOUT, ge=1)
    # None follows session_timeout.
    idle_timeout: Optional[int] = Field(default=None, ge=1)
    max_login_attempts: int = Field(default=5, ge=1)
    max_events: int = Field(default=MAX_EVENTS, ge=1)
    key_bucket_seconds: int = Field(default=KEY_BUCKET_SECONDS, ge=1)
    # None accepts every bucket a still-fresh record can have been sealed in.
    key_grace_buckets: Optional[int] = Field(default=None, ge=0)
    rate_limit_max_requests: int = Field(default=10, ge=1)
    rate_limit_window_ms: int = Field(default=60_000, ge=1)
    tracked_keys: tuple[str, ...] = TRACKED_KEYS

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_timeouts(self) -> "SecurityConfig":
        """Idle timeout cannot outlive the stored record itself."""
        if self.idle_timeout is None:
            self.idle_timeout = self.session_timeout
        elif self.idle_timeout > self.session_timeout:
            raise ValueError(
                f"idle_timeout ({self.idle_timeout}s) cannot exceed "
                f"session_timeout ({self.session_timeout}s)"
            )
        return self

    @property
    def grace_buckets(self) -> int:
        """Previous key buckets whose envelopes still decrypt."""
        if self.key_grace_buckets is not None:
            return self.key_grace_buckets
        return -(-self.session_timeout // self.key_bucket_seconds)

    @property
    def session_timeout_ms(self) -> int:
        return self.session_timeout * 1000

    @property
    def idle_timeout_ms(self) -> int:
        return self.idle_timeout * 1000

    @classmethod
    def from_env(cls) -> "SecurityConfig":
        """Create SecurityConfig by loading values from environment.

        Raises:
            RuntimeError: If CLIENTGUARD_APP_SECRET is not set.
        """
        secret = os.environ.get(f"{_ENV_PREFIX}APP_SECRET")
        if not secret:
            raise RuntimeError(
                "No application secret found in environment. "
                f"Set {_ENV_PREFIX}APP_SECRET=<secret>"
            )
        values: dict = {"app_secret": secret}
        fingerprint = os.environ.get(f"{_ENV_PREFIX}FINGERPRINT")
        if fingerprint:
            values["fingerprint"] = fingerprint
        encryption = os.environ.get(f"{_ENV_PREFIX}ENABLE_ENCRYPTION")
        if encryption is not None:
            values["enable_encryption"] = encryption.lower() not in (
                "0", "false", "no", "off"
            )
        for name in (
            "cipher_backend",
            "session_timeout",
            "idle_timeout",
            "max_login_attempts",
            "max_events",
            "key_bucket_seconds",
            "key_grace_buckets",
            "rate_limit_max_requests",
            "rate_limit_window_ms",
        ):
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        config = cls(**values)
        logger.debug(
            "Loaded security config: encryption=%s cipher=%s timeout=%ss",
            config.enable_encryption,
            config.cipher_backend,
            config.session_timeout,
        )
        return config
