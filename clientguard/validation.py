"""
Input Validator/Sanitizer — Makes user input inert before it is stored or sent.

Pipeline used by :meth:`InputValidator.validate`:
1. CSRF check, when the payload carries ``csrf_token`` (mismatch rejects
   immediately and is logged at high severity);
2. ``sanitize`` every string in the payload;
3. schema validation (pydantic model or ``TypeAdapter``), whose string
   fields additionally run ``validate_input``.

Every attempt is logged to the security event log.
"""
import re
import html
import logging
from typing import Any, Optional, Union
from collections.abc import Mapping

from markupsafe import escape
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .csrf import CSRFTokenManager
from .events import EventType, SecurityEventLog, Severity

logger = logging.getLogger("clientguard.validation")

DEFAULT_MAX_LENGTH = 500
MAX_EMAIL_LENGTH = 254
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MB
ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "image/webp")

DANGEROUS_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE) for p in (
        r"<script",
        r"javascript:",
        r"on\w+\s*=",
        r"<iframe",
        r"<object",
        r"<embed",
        r"eval\s*\(",
        r"document\.",
        r"window\.",
    )
)

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------

def sanitize_text(text: str) -> str:
    """Render ``text`` as inert HTML text.

    Entities are decoded before escaping, so sanitizing twice gives the
    same result as sanitizing once. Quotes are dropped rather than
    escaped, so quoted text does not grow past the schema length limits.
    """
    text = html.unescape(str(text))
    return str(escape(text.replace("'", "").replace('"', "")))


def sanitize(value: Any) -> Any:
    """Recursively sanitize strings inside ``value``.

    Lists, tuples and mappings are walked; other scalars pass unchanged.
    """
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, Mapping):
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    if isinstance(value, tuple):
        return tuple(sanitize(v) for v in value)
    return value


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def validate_input(text: Any, max_length: int = DEFAULT_MAX_LENGTH) -> bool:
    """Reject empty, oversized or script-looking input."""
    if not text or not isinstance(text, str):
        return False
    if len(text) > max_length:
        return False
    return not any(p.search(text) for p in DANGEROUS_PATTERNS)


def validate_email(email: Any) -> bool:
    if not isinstance(email, str):
        return False
    return len(email) <= MAX_EMAIL_LENGTH and bool(_EMAIL_RE.match(email))


def validate_password(password: Any) -> tuple[bool, str]:
    """Check password strength.

    Returns:
        Tuple of (is_valid, message).
    """
    if not isinstance(password, str) or len(password) < 8:
        return False, "Password must be at least 8 characters long"
    has_upper = re.search(r"[A-Z]", password) is not None
    has_lower = re.search(r"[a-z]", password) is not None
    has_digit = re.search(r"\d", password) is not None
    if not (has_upper and has_lower and has_digit):
        return False, "Password must contain uppercase, lowercase, and numbers"
    return True, "Password is strong"


def validate_file_upload(content_type: str, size: int) -> tuple[bool, str]:
    """Accept JPEG, PNG and WebP images up to 5 MB."""
    if content_type not in ALLOWED_UPLOAD_TYPES:
        return False, "Only JPEG, PNG, and WebP images are allowed"
    if size > MAX_UPLOAD_SIZE:
        return False, "File size must be less than 5MB"
    return True, "File is valid"


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    ok: bool
    data: Any = None
    errors: list[str] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


def _error_message(error: Mapping) -> str:
    if error.get("type") == "value_error":
        ctx = error.get("ctx") or {}
        if "error" in ctx:
            return str(ctx["error"])
    loc = ".".join(str(p) for p in error.get("loc", ()))
    msg = error.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


class InputValidator:
    """Sanitizes and schema-checks payloads, logging every attempt."""

    def __init__(self, csrf: CSRFTokenManager, events: SecurityEventLog):
        self._csrf = csrf
        self._events = events

    @staticmethod
    def sanitize(value: Any) -> Any:
        return sanitize(value)

    def validate(
        self,
        value: Any,
        schema: Union[type[BaseModel], TypeAdapter],
        context: str = "unknown",
        require_csrf: bool = True,
    ) -> ValidationResult:
        """Run the CSRF / sanitize / schema pipeline.

        Returns:
            ``ValidationResult(ok=True, data=<validated>)`` or
            ``ValidationResult(ok=False, errors=[...])``.
        """
        try:
            if require_csrf and isinstance(value, Mapping) and "csrf_token" in value:
                if not self._csrf.validate_token(value["csrf_token"]):
                    self._events.log_event(
                        EventType.CSRF_VIOLATION, {"context": context}, Severity.HIGH
                    )
                    return ValidationResult(ok=False, errors=["Invalid CSRF token"])

            sanitized = sanitize(value)
            try:
                data = self._apply(schema, sanitized)
            except ValidationError as err:
                errors = [_error_message(e) for e in err.errors()]
                self._events.log_event(
                    EventType.INPUT_VALIDATION,
                    {"context": context, "success": False, "errors": errors},
                    Severity.MEDIUM,
                )
                return ValidationResult(ok=False, errors=errors)

            self._events.log_event(
                EventType.INPUT_VALIDATION,
                {"context": context, "success": True},
                Severity.LOW,
            )
            return ValidationResult(ok=True, data=data)
        except Exception as err:
            logger.error("Validation failed for context=%s: %s", context, err)
            self._events.log_event(
                EventType.INPUT_VALIDATION,
                {"context": context, "success": False, "error": type(err).__name__},
                Severity.HIGH,
            )
            return ValidationResult(ok=False, errors=["Validation failed"])

    @staticmethod
    def _apply(
        schema: Union[type[BaseModel], TypeAdapter], value: Any
    ) -> Any:
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(value)
        return schema.model_validate(value)

    def validate_text(
        self,
        text: Any,
        max_length: int = DEFAULT_MAX_LENGTH,
        context: Optional[str] = None,
    ) -> bool:
        """``validate_input`` on a single string, logged like ``validate``."""
        ok = validate_input(text, max_length)
        self._events.log_event(
            EventType.INPUT_VALIDATION,
            {"context": context or "text", "success": ok},
            Severity.LOW if ok else Severity.MEDIUM,
        )
        return ok
