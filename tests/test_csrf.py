"""
Tests for the CSRFTokenManager.
"""
import pytest

from clientguard import CSRFTokenManager, MemoryStorage
from clientguard.conf import CSRF_TOKEN_KEY


@pytest.fixture
def session_storage():
    return MemoryStorage()


@pytest.fixture
def csrf(session_storage):
    return CSRFTokenManager(session_storage)


class TestTokens:

    def test_get_token_is_idempotent(self, csrf):
        assert csrf.get_token() == csrf.get_token()

    def test_token_shape(self, csrf):
        token = csrf.get_token()
        assert len(token) == 32
        int(token, 16)

    def test_generate_replaces(self, csrf):
        first = csrf.get_token()
        second = csrf.generate_token()
        assert first != second
        assert csrf.get_token() == second

    def test_token_lives_in_session_storage(self, csrf, session_storage):
        token = csrf.get_token()
        assert session_storage.get_item(CSRF_TOKEN_KEY) == token

    def test_restored_from_session_storage(self, csrf, session_storage):
        token = csrf.get_token()
        other = CSRFTokenManager(session_storage)
        assert other.get_token() == token

    def test_clear(self, csrf, session_storage):
        token = csrf.get_token()
        csrf.clear_token()
        assert csrf.has_token is False
        assert session_storage.get_item(CSRF_TOKEN_KEY) is None
        assert csrf.get_token() != token


class TestValidate:

    def test_valid(self, csrf):
        assert csrf.validate_token(csrf.get_token()) is True

    @pytest.mark.parametrize("candidate", ["", None, 123, "deadbeef", "ñandú"])
    def test_invalid(self, csrf, candidate):
        csrf.get_token()
        assert csrf.validate_token(candidate) is False

    def test_rotated_token_invalid(self, csrf):
        old = csrf.get_token()
        csrf.generate_token()
        assert csrf.validate_token(old) is False
