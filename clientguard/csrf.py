"""CSRF token manager.

The token lives in memory and in the session-scoped medium under
``csrf_token``; it dies with the browsing context. Validation is plain
(constant-time) equality against the active token: it binds stored
records to the current session, it is not a signature.
"""
import secrets
import logging
from typing import Any, Optional

from .conf import CSRF_TOKEN_KEY
from .storage import KeyValueStorage, MemoryStorage

logger = logging.getLogger("clientguard.csrf")

TOKEN_BYTES = 16  # 128 bits


class CSRFTokenManager:
    """Owns the single active anti-forgery token of a context."""

    def __init__(self, session_storage: Optional[KeyValueStorage] = None):
        self._storage = session_storage if session_storage is not None else MemoryStorage()
        self._token: Optional[str] = None

    def generate_token(self) -> str:
        """Mint a new token, replacing the active one."""
        self._token = secrets.token_hex(TOKEN_BYTES)
        self._storage.set_item(CSRF_TOKEN_KEY, self._token)
        logger.debug("CSRF token rotated")
        return self._token

    def get_token(self) -> str:
        """Return the active token, minting one if there is none."""
        if not self._token:
            self._token = self._storage.get_item(CSRF_TOKEN_KEY) or self.generate_token()
        return self._token

    def validate_token(self, candidate: Any) -> bool:
        if not isinstance(candidate, str) or not candidate:
            return False
        return secrets.compare_digest(
            candidate.encode("utf-8"), self.get_token().encode("utf-8")
        )

    def clear_token(self) -> None:
        self._token = None
        self._storage.remove_item(CSRF_TOKEN_KEY)
        logger.debug("CSRF token cleared")

    @property
    def has_token(self) -> bool:
        return bool(self._token or self._storage.get_item(CSRF_TOKEN_KEY))
