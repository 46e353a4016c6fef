"""
Tests for ProtectedStore.

Tests cover:
- set/get round-trip through encryption
- Expiry at the session timeout boundary
- CSRF token binding of stored records
- Self-healing eviction of corrupt and malformed records
- clear(), plaintext mode and rekey()
"""
import pytest
import orjson

from clientguard import FileStorage, MemoryStorage, SecurityContext
from clientguard.crypto import ENVELOPE_PREFIX
from clientguard.events import EventType, Severity

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class TestSetGet:

    def test_round_trip(self, store):
        store.set("prefs", {"theme": "dark", "cuisines": ["thai", "sushi"]})
        assert store.get("prefs") == {"theme": "dark", "cuisines": ["thai", "sushi"]}

    def test_missing_key_returns_default(self, store):
        assert store.get("missing") is None
        assert store.get("missing", "fallback") == "fallback"

    def test_raw_value_is_encrypted(self, store, context):
        store.set("email", "alice@example.com")
        raw = context.storage.get_item("email")
        assert raw.startswith(ENVELOPE_PREFIX)
        assert "alice" not in raw

    def test_overwrite(self, store):
        store.set("k", 1)
        store.set("k", 2)
        assert store.get("k") == 2

    def test_falsy_values(self, store):
        store.set("zero", 0)
        store.set("empty", [])
        assert store.get("zero") == 0
        assert store.get("empty") == []

    def test_remove(self, store):
        store.set("k", "v")
        store.remove("k")
        assert store.get("k") is None
        assert "k" not in store

    def test_keys_and_contains(self, store):
        store.set("a", 1)
        store.set("b", 2)
        assert set(store.keys()) == {"a", "b"}
        assert "a" in store

    def test_unserializable_value_is_dropped(self, store, events):
        loop: dict = {}
        loop["self"] = loop
        store.set("loop", loop)
        assert "loop" not in store
        failures = events.get_events(EventType.ENCRYPTION_FAILURE)
        assert failures and failures[-1].severity is Severity.HIGH


class TestExpiry:

    def test_readable_just_before_timeout(self, store, clock):
        store.set("k", "v")
        clock.advance(DAY_MS - 1)
        assert store.get("k") == "v"

    def test_evicted_just_after_timeout(self, store, clock, context):
        store.set("k", "v")
        clock.advance(DAY_MS + 1)
        assert store.get("k") is None
        assert context.storage.get_item("k") is None

    def test_boundary_is_inclusive(self, store, clock):
        store.set("k", "v")
        clock.advance(DAY_MS)
        assert store.get("k") == "v"


class TestCSRFBinding:

    def test_rotation_makes_record_unreadable(self, store, context):
        store.set("k", "v")
        context.csrf.generate_token()
        assert store.get("k") is None
        assert context.storage.get_item("k") is None

    def test_clear_token_makes_record_unreadable(self, store, context):
        store.set("k", "v")
        context.csrf.clear_token()
        assert store.get("k") is None

    def test_mismatch_is_logged(self, store, context, events):
        store.set("k", "v")
        context.csrf.generate_token()
        store.get("k")
        suspicious = events.get_events(EventType.SUSPICIOUS_ACTIVITY)
        assert len(suspicious) == 1
        assert suspicious[0].severity is Severity.MEDIUM
        assert suspicious[0].details["key"] == "k"

    def test_record_without_token_is_accepted(self, store, context, clock):
        context.storage.set_item(
            "legacy",
            context.codec.encrypt({"value": "old", "timestamp": clock.now()}),
        )
        assert store.get("legacy") == "old"


class TestEviction:

    def test_corrupt_value_is_evicted(self, store, context):
        store.set("k", "v")
        context.storage.set_item("k", "definitely not a payload")
        assert store.get("k") is None
        assert context.storage.get_item("k") is None
        assert store.get("k") is None

    def test_decode_failure_is_logged(self, store, context, events):
        context.storage.set_item("k", ENVELOPE_PREFIX + "garbage")
        store.get("k")
        failures = events.get_events(EventType.ENCRYPTION_FAILURE)
        assert failures[-1].details == {"stage": "decrypt", "key": "k"}

    @pytest.mark.parametrize("payload", [
        "123",
        '"just a string"',
        '{"value": 1}',
        '{"value": 1, "timestamp": "yesterday"}',
        '{"value": 1, "timestamp": true}',
    ])
    def test_malformed_record_is_evicted(self, store, context, payload):
        context.storage.set_item("k", payload)
        assert store.get("k") is None
        assert context.storage.get_item("k") is None

    def test_legacy_plaintext_record(self, store, context, clock):
        record = {
            "value": {"n": 1},
            "timestamp": clock.now(),
            "csrf_token": context.csrf.get_token(),
        }
        context.storage.set_item("k", orjson.dumps(record).decode())
        assert store.get("k") == {"n": 1}


class TestClear:

    def test_clear_removes_everything_and_token(self, store, context):
        store.set("a", 1)
        token = context.csrf.get_token()
        store.clear()
        assert context.storage.keys() == []
        assert context.session_storage.get_item("csrf_token") is None
        assert context.csrf.get_token() != token


class TestPlaintextMode:

    def test_encryption_disabled(self, config, clock):
        plain = config.model_copy(update={"enable_encryption": False})
        context = SecurityContext(plain, clock=clock)
        context.store.set("k", {"a": 1})
        raw = context.storage.get_item("k")
        assert not raw.startswith(ENVELOPE_PREFIX)
        assert orjson.loads(raw)["value"] == {"a": 1}
        assert context.store.get("k") == {"a": 1}


class TestRekey:

    def test_rekey_extends_key_lifetime(self, config, clock):
        short = config.model_copy(update={"key_grace_buckets": 2})
        context = SecurityContext(short, clock=clock)
        context.store.set("k", "v")
        clock.advance(HOUR_MS)
        stats = context.store.rekey()
        assert stats == {"total": 1, "rotated": 1, "skipped": 0, "errors": 0}
        clock.advance(2 * HOUR_MS)
        assert context.store.get("k") == "v"

    def test_without_rekey_old_key_expires(self, config, clock):
        short = config.model_copy(update={"key_grace_buckets": 2})
        context = SecurityContext(short, clock=clock)
        context.store.set("k", "v")
        clock.advance(3 * HOUR_MS)
        assert context.store.get("k") is None

    def test_rekey_skips_current_and_evicts_broken(self, store, context):
        store.set("fresh", 1)
        context.storage.set_item("broken", "??")
        stats = store.rekey()
        assert stats["skipped"] == 1
        assert stats["errors"] == 1
        assert "broken" not in store
        assert store.get("fresh") == 1


class TestPersistentMedium:

    def test_file_storage_survives_restart(self, config, clock, tmp_path):
        path = tmp_path / "store.json"
        session_storage = MemoryStorage()
        first = SecurityContext(
            config, storage=FileStorage(path), session_storage=session_storage, clock=clock
        )
        first.store.set("prefs", {"lang": "es"})

        second = SecurityContext(
            config, storage=FileStorage(path), session_storage=session_storage, clock=clock
        )
        assert second.store.get("prefs") == {"lang": "es"}

    def test_new_browsing_context_cannot_read(self, config, clock, tmp_path):
        path = tmp_path / "store.json"
        first = SecurityContext(config, storage=FileStorage(path), clock=clock)
        first.store.set("prefs", {"lang": "es"})

        second = SecurityContext(config, storage=FileStorage(path), clock=clock)
        assert second.store.get("prefs") is None
