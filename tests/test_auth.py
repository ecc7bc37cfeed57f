"""Tests for authentication module."""

from datetime import timedelta

import pytest

from postdesk.core.auth import AuthManager
from postdesk.core.models import Role
from postdesk.core.session_store import SessionStore


def _session(auth, user_id="alice"):
    return auth.create_session(
        user_id=user_id,
        role=Role.AUTHOR,
        ip="127.0.0.1",
        user_agent="TestAgent",
    )


class TestPasswordHashing:
    """Tests for password hashing."""

    def test_hash_password(self):
        """Test password hashing produces bcrypt hash."""
        auth = AuthManager(bcrypt_rounds=4)
        hash_str = auth.hash_password("test_password_123")

        assert hash_str.startswith("$2b$04$")
        assert len(hash_str) == 60

    def test_verify_password_correct(self):
        """Test correct password verification."""
        auth = AuthManager(bcrypt_rounds=4)
        hash_str = auth.hash_password("correct_password")

        assert auth.verify_password("correct_password", hash_str) is True

    def test_verify_password_wrong(self):
        """Test wrong password verification."""
        auth = AuthManager(bcrypt_rounds=4)
        hash_str = auth.hash_password("correct_password")

        assert auth.verify_password("wrong_password", hash_str) is False

    def test_verify_password_invalid_hash(self):
        """Test verification with invalid hash."""
        auth = AuthManager()

        assert auth.verify_password("password", "invalid_hash") is False
        assert auth.verify_password("password", "") is False

    def test_generate_password(self):
        """Generated passwords avoid look-alike characters."""
        auth = AuthManager()
        password = auth.generate_password(32)

        assert len(password) == 32
        assert not set(password) & set("0O1lI")


class TestSessionManagement:
    """Tests for in-memory session management."""

    def test_create_session(self):
        """Test session creation."""
        auth = AuthManager()
        session = _session(auth)

        assert session.user_id == "alice"
        assert session.role == Role.AUTHOR
        assert session.expires_at - session.created_at == timedelta(hours=4)
        assert len(session.session_id) > 0

    def test_verify_session_valid(self):
        """Test verifying a valid session."""
        auth = AuthManager()
        session = _session(auth)

        verified = auth.verify_session(session.session_id)
        assert verified is not None
        assert verified.user_id == "alice"

    def test_verify_session_invalid(self):
        """Test verifying an invalid session."""
        auth = AuthManager()

        assert auth.verify_session("nonexistent") is None
        assert auth.verify_session("") is None
        assert auth.verify_session(None) is None

    def test_expired_session_rejected(self):
        """Sessions past their expiry are dropped on lookup."""
        auth = AuthManager()
        session = _session(auth)
        session.expires_at = session.created_at - timedelta(seconds=1)
        auth.sessions.save_session(session)

        assert auth.verify_session(session.session_id) is None
        assert auth.get_session_count() == 0

    def test_invalidate_session(self):
        """Test session invalidation."""
        auth = AuthManager()
        session = _session(auth)

        assert auth.invalidate_session(session.session_id) is True
        assert auth.verify_session(session.session_id) is None
        assert auth.invalidate_session(session.session_id) is False

    def test_invalidate_user_sessions(self):
        """Test invalidating all sessions for a user."""
        auth = AuthManager()
        for _ in range(3):
            _session(auth)
        _session(auth, user_id="bob")

        assert auth.invalidate_user_sessions("alice") == 3
        assert auth.get_session_count("alice") == 0
        assert auth.get_session_count("bob") == 1


class TestPersistentSessions:
    """Tests for sessions backed by the session file."""

    @pytest.fixture
    def auth(self, tmp_path):
        return AuthManager(session_store=SessionStore(tmp_path / "sessions.json"))

    def test_session_survives_new_manager(self, auth, tmp_path):
        """A second manager on the same file sees the session."""
        session = _session(auth)

        other = AuthManager(session_store=SessionStore(tmp_path / "sessions.json"))
        verified = other.verify_session(session.session_id)

        assert verified is not None
        assert verified.user_id == "alice"

    def test_cleanup_expired(self, auth, tmp_path):
        """Expired sessions are removed from the file."""
        store = SessionStore(tmp_path / "sessions.json")
        session = _session(auth)
        session.expires_at = session.created_at - timedelta(minutes=1)
        store.save_session(session)
        _session(auth, user_id="bob")

        assert auth.cleanup_expired_sessions() == 1
        assert auth.get_session_count() == 1
        assert auth.get_session_count("bob") == 1

    def test_corrupt_session_file(self, auth, tmp_path):
        """An unreadable session file behaves like an empty one."""
        (tmp_path / "sessions.json").write_text("{not json", encoding="utf-8")

        assert auth.verify_session("anything") is None
        assert auth.get_session_count() == 0


class TestRateLimiting:
    """Tests for login rate limiting."""

    def test_rate_limit_under(self):
        """Test rate limit not exceeded."""
        auth = AuthManager(rate_limit_attempts=5)

        for _ in range(4):
            auth.rate_limiter.record("192.168.1.1", False)

        assert auth.rate_limiter.is_allowed("192.168.1.1") is True

    def test_rate_limit_exceeded(self):
        """Test rate limit exceeded."""
        auth = AuthManager(rate_limit_attempts=5)

        for _ in range(5):
            auth.rate_limiter.record("192.168.1.1", False)

        assert auth.rate_limiter.is_allowed("192.168.1.1") is False

    def test_rate_limit_per_ip(self):
        """Test rate limiting is per-IP."""
        auth = AuthManager(rate_limit_attempts=3)

        for _ in range(3):
            auth.rate_limiter.record("192.168.1.1", False)

        assert auth.rate_limiter.is_allowed("192.168.1.1") is False
        assert auth.rate_limiter.is_allowed("192.168.1.2") is True

    def test_successful_login_not_counted(self):
        """Test successful logins don't count toward rate limit."""
        auth = AuthManager(rate_limit_attempts=3)

        for _ in range(5):
            auth.rate_limiter.record("192.168.1.1", True)

        assert auth.rate_limiter.is_allowed("192.168.1.1") is True

    def test_prune_forgets_old_attempts(self):
        """Attempts outside the window are forgotten."""
        auth = AuthManager(rate_limit_attempts=3)
        auth.rate_limiter.record("192.168.1.1", False)
        auth.rate_limiter.window = timedelta(0)

        assert auth.rate_limiter.prune() == 1
        assert auth.rate_limiter.is_allowed("192.168.1.1") is True
