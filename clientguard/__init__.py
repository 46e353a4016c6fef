"""ClientGuard — Protection layer for user data kept by client applications.

Security Note (Threat Model):
    Stored values are encrypted with a key derived from an application
    secret, an environment fingerprint and an hourly time bucket. The key
    is never stored, but anyone able to run code in the same environment
    can derive it; this defends against static extraction of stored blobs
    only. CSRF tokens bind records to the current session by plain
    equality, they are not signatures. The interpreter itself is assumed
    not to be compromised.
"""

from .version import __version__
from .clock import Clock, ManualClock, SystemClock
from .conf import SecurityConfig, generate_app_secret
from .context import SecurityContext
from .crypto import DecodeError, EncryptionCodec, KeyDerivation
from .csrf import CSRFTokenManager
from .events import EventType, SecurityEvent, SecurityEventLog, Severity
from .privacy import PrivacyManager
from .ratelimit import RateLimitEntry, RateLimiter
from .session import SessionManager, SessionRecord
from .storage import FileStorage, KeyValueStorage, MemoryStorage
from .store import ProtectedStore
from .validation import (
    InputValidator,
    ValidationResult,
    sanitize,
    validate_email,
    validate_file_upload,
    validate_input,
    validate_password,
)

__all__ = [
    "__version__",
    "Clock",
    "ManualClock",
    "SystemClock",
    "SecurityConfig",
    "generate_app_secret",
    "SecurityContext",
    "DecodeError",
    "EncryptionCodec",
    "KeyDerivation",
    "CSRFTokenManager",
    "EventType",
    "SecurityEvent",
    "SecurityEventLog",
    "Severity",
    "PrivacyManager",
    "RateLimitEntry",
    "RateLimiter",
    "SessionManager",
    "SessionRecord",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "ProtectedStore",
    "InputValidator",
    "ValidationResult",
    "sanitize",
    "validate_email",
    "validate_file_upload",
    "validate_input",
    "validate_password",
]
