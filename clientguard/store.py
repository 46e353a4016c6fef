"""
ProtectedStore — Encrypted, expiring, CSRF-bound key-value storage.

Provides the public API over a plain key-value medium:
- ``set(key, value)`` — stamp, encrypt and persist a value
- ``get(key, default)`` — decrypt, check freshness and token binding
- ``remove(key)`` / ``clear()`` — passthroughs to the medium
- ``rekey()`` — re-seal every readable record under the current key

Every read is self-healing: undecodable, malformed, expired or
token-mismatched records are evicted and reported as absent, never
raised to the caller.

Security Note:
    Never log values or ciphertext. Only log key names and outcomes.
"""
import logging
from typing import Any, Optional

from .clock import Clock, SystemClock
from .conf import SESSION_TIMEOUT
from .crypto import DecodeError, EncryptionCodec
from .csrf import CSRFTokenManager
from .events import EventType, SecurityEventLog, Severity
from .storage import KeyValueStorage

logger = logging.getLogger("clientguard.store")


class ProtectedStore:
    """Façade over the persistent medium.

    Stored records have the shape ``{value, timestamp, csrf_token}``; a
    record is readable while ``now - timestamp <= session_timeout`` and,
    when it carries a token, while that token is the active CSRF token.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        codec: EncryptionCodec,
        csrf: CSRFTokenManager,
        events: SecurityEventLog,
        clock: Optional[Clock] = None,
        session_timeout: int = SESSION_TIMEOUT,
        enable_encryption: bool = True,
    ):
        self._storage = storage
        self._codec = codec
        self._csrf = csrf
        self._events = events
        self._clock = clock or SystemClock()
        self._timeout_ms = session_timeout * 1000
        self._encrypt = enable_encryption

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    def _encode(self, record: dict) -> str:
        if self._encrypt:
            return self._codec.encrypt(record)
        return self._codec.dumps(record)

    def _evict(self, key: str, reason: str) -> None:
        self._storage.remove_item(key)
        logger.debug("Store evicted key=%s reason=%s", key, reason)

    def _read_record(self, key: str, raw: str) -> Optional[dict]:
        """Decode and check a raw record, evicting it when unusable."""
        try:
            record = self._codec.decrypt(raw)
        except DecodeError as err:
            logger.debug("Store decode failed for key=%s: %s", key, err)
            self._events.log_event(
                EventType.ENCRYPTION_FAILURE,
                {"stage": "decrypt", "key": key},
                Severity.LOW,
            )
            self._evict(key, "decode")
            return None

        timestamp = record.get("timestamp") if isinstance(record, dict) else None
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            self._evict(key, "malformed")
            return None

        if self._clock.now() - timestamp > self._timeout_ms:
            self._evict(key, "expired")
            return None

        token = record.get("csrf_token")
        if token and not self._csrf.validate_token(token):
            logger.warning("CSRF token validation failed for stored key=%s", key)
            self._events.log_event(
                EventType.SUSPICIOUS_ACTIVITY,
                {"reason": "csrf_mismatch", "key": key},
                Severity.MEDIUM,
            )
            self._evict(key, "csrf_mismatch")
            return None
        return record

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Stamp and persist a value.

        Values that cannot be serialized at all are dropped and logged;
        nothing is raised.
        """
        record = {
            "value": value,
            "timestamp": self._clock.now(),
            "csrf_token": self._csrf.get_token(),
        }
        try:
            payload = self._encode(record)
        except TypeError as err:
            logger.error("Store could not serialize key=%s: %s", key, err)
            self._events.log_event(
                EventType.ENCRYPTION_FAILURE,
                {"stage": "serialize", "key": key},
                Severity.HIGH,
            )
            return
        self._storage.set_item(key, payload)
        logger.debug("Store set: key=%s", key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` if absent or unusable."""
        raw = self._storage.get_item(key)
        if raw is None:
            return default
        record = self._read_record(key, raw)
        if record is None:
            return default
        return record.get("value", default)

    def remove(self, key: str) -> None:
        self._storage.remove_item(key)
        logger.debug("Store remove: key=%s", key)

    def clear(self) -> None:
        """Remove every key and drop the active CSRF token."""
        self._storage.clear()
        self._csrf.clear_token()
        logger.debug("Store cleared")

    def keys(self) -> list[str]:
        return self._storage.keys()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._storage.get_item(key) is not None

    def rekey(self) -> dict:
        """Re-encrypt every readable record under the current key bucket.

        Records keep their original timestamp and token. Unreadable records
        are evicted along the way.

        Returns:
            Stats dict with keys: total, rotated, skipped, errors.
        """
        stats = {"total": 0, "rotated": 0, "skipped": 0, "errors": 0}
        current = self._codec.keys.bucket()
        for key in list(self._storage.keys()):
            raw = self._storage.get_item(key)
            if raw is None:
                continue
            stats["total"] += 1
            if not self._encrypt or self._codec.envelope_bucket(raw) == current:
                stats["skipped"] += 1
                continue
            record = self._read_record(key, raw)
            if record is None:
                stats["errors"] += 1
                continue
            self._storage.set_item(key, self._codec.encrypt(record))
            stats["rotated"] += 1
        logger.info("Store rekey complete: %s", stats)
        return stats
