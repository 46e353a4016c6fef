"""
Tests for the privacy export/delete surface.
"""
from datetime import datetime

from clientguard.conf import BEHAVIOR_KEY, PREFERENCES_KEY, TRACKED_KEYS
from clientguard.events import EventType, Severity


class TestExport:

    def test_export_snapshot(self, context, store):
        store.set(BEHAVIOR_KEY, {"swipes": 12})
        context.sessions.create_session("u1")
        # create_session rotated the token; write preferences afterwards
        store.set(PREFERENCES_KEY, {"diet": "vegan"})

        data = context.privacy.export_all_data()
        assert set(data) == {"behavior", "preferences", "session", "exported_at"}
        assert data["behavior"] is None
        assert data["preferences"] == {"diet": "vegan"}
        assert data["session"]["user_id"] == "u1"
        assert datetime.fromisoformat(data["exported_at"]).tzinfo is not None

    def test_export_is_logged(self, context, events):
        context.privacy.export_all_data()
        last = events.get_events(EventType.DATA_ACCESS)[-1]
        assert last.details == {"action": "data_export"}
        assert last.severity is Severity.MEDIUM


class TestDelete:

    def test_delete_all_tracked_keys(self, context, store):
        for key in TRACKED_KEYS:
            store.set(key, "x")
        store.set("unrelated", "keep")
        context.privacy.delete_all_data()
        for key in TRACKED_KEYS:
            assert store.get(key) is None
        assert store.get("unrelated") == "keep"

    def test_delete_is_logged(self, context, events):
        context.privacy.delete_all_data()
        last = events.get_events(EventType.DATA_ACCESS)[-1]
        assert last.details["action"] == "data_deletion"
        assert last.severity is Severity.MEDIUM


class TestAnonymize:

    def test_anonymize(self, context):
        original = {"user_id": "u1", "username": "alice", "email": "a@b.co", "age": 3}
        result = context.privacy.anonymize_data(original)
        assert result["user_id"].startswith("anonymous_")
        assert result["username"] == "anonymous_user"
        assert result["email"] == "anonymous@example.com"
        assert result["age"] == 3
        assert original["username"] == "alice"
