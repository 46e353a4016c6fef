"""
ClientGuard Crypto Core — Key derivation, encryption/decryption, and serialization.

Key derivation:
    HKDF-SHA256(app_secret || fingerprint, info="clientguard-store-b{bucket}")
    where bucket = floor(now / key_bucket_seconds). The key is never stored;
    it is recomputed on demand and changes every bucket (one hour by default).

Envelope format (versioned, so plaintext fallback is never ambiguous):
    "cg1." + urlsafe_b64([bucket 4B uint32 BE][nonce 12B][payload + tag 16B])

Anything without the "cg1." prefix is treated as a legacy plaintext JSON
payload and parsed directly.

Security Note:
    Never log plaintext, ciphertext or key material. The derived key only
    resists static extraction of stored blobs; anyone who can run code in
    the same environment can derive it too.
"""
import os
import struct
import base64
import logging
import binascii
from typing import Any, Optional

import orjson
from pydantic import BaseModel
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .clock import Clock, SystemClock
from .conf import KEY_BUCKET_SECONDS
from .events import EventType, SecurityEventLog, Severity

logger = logging.getLogger("clientguard.crypto")

ENVELOPE_PREFIX = "cg1."
NONCE_SIZE = 12  # 96-bit nonce
BUCKET_SIZE = 4  # uint32 big-endian
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256

_BYTES_WRAPPER_KEY = "__cg_bytes_b64__"

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


class DecodeError(ValueError):
    """Stored text cannot be turned back into a value."""


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (application secret plus fingerprint).
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


class KeyDerivation:
    """Derives the store key from secret, fingerprint and time bucket.

    Two calls within the same bucket on the same fingerprint return the
    same key; nothing is cached or persisted.
    """

    def __init__(
        self,
        secret: str,
        fingerprint: str,
        clock: Optional[Clock] = None,
        bucket_seconds: int = KEY_BUCKET_SECONDS,
    ):
        self._seed = secret.encode("utf-8") + b"\x00" + fingerprint.encode("utf-8")
        self._clock = clock or SystemClock()
        self._bucket_ms = bucket_seconds * 1000

    def bucket(self, now: Optional[int] = None) -> int:
        """Return the time bucket for ``now`` (defaults to the clock)."""
        if now is None:
            now = self._clock.now()
        return now // self._bucket_ms

    def derive(self, bucket: Optional[int] = None) -> bytes:
        """Return the key for ``bucket`` (defaults to the current one)."""
        if bucket is None:
            bucket = self.bucket()
        return derive_key(self._seed, f"clientguard-store-b{bucket}")


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def _default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return {_BYTES_WRAPPER_KEY: base64.b64encode(bytes(obj)).decode("ascii")}
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    return str(obj)


def _unwrap(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and _BYTES_WRAPPER_KEY in value:
            return base64.b64decode(value[_BYTES_WRAPPER_KEY])
        return {k: _unwrap(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_unwrap(v) for v in value]
    return value


def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, dict, list, bytes, bool, None and anything
    orjson handles natively. bytes values are wrapped as a base64 marker
    object for a safe JSON round-trip; unknown objects become strings.

    Raises:
        TypeError: If the value cannot be represented at all.
    """
    return orjson.dumps(
        value,
        default=_default,
        option=orjson.OPT_NON_STR_KEYS,
    )


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes back to a Python value.

    Raises:
        DecodeError: If data is not valid JSON.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise DecodeError(f"Payload is not valid JSON: {err}") from err
    try:
        return _unwrap(parsed)
    except (binascii.Error, TypeError, ValueError) as err:
        raise DecodeError(f"Malformed bytes marker: {err}") from err


# ---------------------------------------------------------------------------
# Encryption codec
# ---------------------------------------------------------------------------

class EncryptionCodec:
    """Turns structured values into self-contained encrypted strings.

    ``decrypt`` fails closed: every unreadable input (foreign or stale key,
    tampered envelope, garbage) raises :class:`DecodeError` and nothing
    else.
    """

    def __init__(
        self,
        keys: KeyDerivation,
        cipher_backend: str = "aesgcm",
        grace_buckets: int = 0,
        events: Optional[SecurityEventLog] = None,
    ):
        try:
            self._cipher_cls = _CIPHERS[cipher_backend.lower()]
        except KeyError:
            raise ValueError(
                f"Unsupported cipher backend: {cipher_backend}"
            ) from None
        self._keys = keys
        self._grace = grace_buckets
        self._events = events

    @property
    def keys(self) -> KeyDerivation:
        return self._keys

    # --- plain JSON helpers ---

    def dumps(self, value: Any) -> str:
        """Serialize without encryption (legacy/plaintext form)."""
        return serialize_value(value).decode("utf-8")

    def loads(self, text: str) -> Any:
        if not isinstance(text, (str, bytes)):
            raise DecodeError(f"Unsupported payload type {type(text).__name__}")
        return deserialize_value(text)

    # --- envelope ---

    def encrypt(self, value: Any) -> str:
        """Serialize and encrypt ``value``.

        If the cipher itself fails the plaintext JSON is returned instead,
        so callers always have something to write.

        Raises:
            TypeError: If the value cannot be serialized.
        """
        plaintext = serialize_value(value)
        try:
            bucket = self._keys.bucket()
            cipher = self._cipher_cls(self._keys.derive(bucket))
            nonce = os.urandom(NONCE_SIZE)
            ct = cipher.encrypt(nonce, plaintext, None)
            blob = struct.pack("!I", bucket) + nonce + ct
        except Exception as err:
            logger.error("Encryption failed, storing plaintext: %s", err)
            if self._events is not None:
                self._events.log_event(
                    EventType.ENCRYPTION_FAILURE,
                    {"stage": "encrypt", "error": type(err).__name__},
                    Severity.HIGH,
                )
            return plaintext.decode("utf-8")
        return ENVELOPE_PREFIX + base64.urlsafe_b64encode(blob).decode("ascii")

    def decrypt(self, text: str) -> Any:
        """Decrypt an envelope, or parse a legacy plaintext payload.

        Raises:
            DecodeError: On any unreadable input.
        """
        if not isinstance(text, str):
            raise DecodeError(f"Unsupported payload type {type(text).__name__}")
        if not text.startswith(ENVELOPE_PREFIX):
            return self.loads(text)

        try:
            blob = base64.urlsafe_b64decode(text[len(ENVELOPE_PREFIX):])
        except (binascii.Error, ValueError) as err:
            raise DecodeError(f"Envelope is not valid base64: {err}") from err
        _min = BUCKET_SIZE + NONCE_SIZE + TAG_SIZE
        if len(blob) < _min:
            raise DecodeError(
                f"Envelope too short: {len(blob)} bytes (minimum {_min})"
            )
        bucket = struct.unpack("!I", blob[:BUCKET_SIZE])[0]
        current = self._keys.bucket()
        if not current - self._grace <= bucket <= current:
            raise DecodeError(
                f"Envelope key bucket {bucket} outside accepted range "
                f"[{current - self._grace}, {current}]"
            )
        nonce = blob[BUCKET_SIZE:BUCKET_SIZE + NONCE_SIZE]
        ct = blob[BUCKET_SIZE + NONCE_SIZE:]
        cipher = self._cipher_cls(self._keys.derive(bucket))
        try:
            plaintext = cipher.decrypt(nonce, ct, None)
        except InvalidTag as err:
            raise DecodeError("Envelope authentication failed") from err
        return deserialize_value(plaintext)

    def envelope_bucket(self, text: str) -> Optional[int]:
        """Return the key bucket of an envelope, None for legacy payloads."""
        if not isinstance(text, str) or not text.startswith(ENVELOPE_PREFIX):
            return None
        try:
            blob = base64.urlsafe_b64decode(text[len(ENVELOPE_PREFIX):])
        except (binascii.Error, ValueError):
            return None
        if len(blob) < BUCKET_SIZE:
            return None
        return struct.unpack("!I", blob[:BUCKET_SIZE])[0]
