"""Privacy export and deletion of the user's stored data."""
import secrets
import logging
from typing import Any, Optional
from datetime import datetime, timezone
from collections.abc import Iterable

from .clock import Clock, SystemClock
from .conf import BEHAVIOR_KEY, PREFERENCES_KEY, SESSION_KEY, TRACKED_KEYS
from .events import EventType, SecurityEventLog, Severity
from .store import ProtectedStore

logger = logging.getLogger("clientguard.privacy")


class PrivacyManager:
    """Backs the account-settings "download my data" and "delete my data"."""

    def __init__(
        self,
        store: ProtectedStore,
        events: SecurityEventLog,
        clock: Optional[Clock] = None,
        tracked_keys: Iterable[str] = TRACKED_KEYS,
    ):
        self._store = store
        self._events = events
        self._clock = clock or SystemClock()
        self._tracked_keys = tuple(tracked_keys)

    @property
    def tracked_keys(self) -> tuple[str, ...]:
        return self._tracked_keys

    def export_all_data(self) -> dict[str, Any]:
        """Return a decrypted snapshot of the user's data for download."""
        exported_at = datetime.fromtimestamp(
            self._clock.now() / 1000, tz=timezone.utc
        )
        data = {
            "behavior": self._store.get(BEHAVIOR_KEY),
            "preferences": self._store.get(PREFERENCES_KEY),
            "session": self._store.get(SESSION_KEY),
            "exported_at": exported_at.isoformat(),
        }
        self._events.log_event(
            EventType.DATA_ACCESS, {"action": "data_export"}, Severity.MEDIUM
        )
        logger.info("User data exported")
        return data

    def delete_all_data(self) -> None:
        for key in self._tracked_keys:
            self._store.remove(key)
        self._events.log_event(
            EventType.DATA_ACCESS,
            {"action": "data_deletion", "keys": len(self._tracked_keys)},
            Severity.MEDIUM,
        )
        logger.info("User data deleted (%d keys)", len(self._tracked_keys))

    @staticmethod
    def anonymize_data(data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with identifying fields replaced."""
        result = dict(data)
        if result.get("user_id"):
            result["user_id"] = f"anonymous_{secrets.token_hex(8)}"
        if result.get("username"):
            result["username"] = "anonymous_user"
        if result.get("email"):
            result["email"] = "anonymous@example.com"
        return result
