"""Passwords, sessions and login throttling."""

import secrets
from collections import defaultdict
from datetime import timedelta

import bcrypt as _bcrypt

from .models import LoginAttempt, Role, Session, utc_now
from .session_store import BaseSessionStore, MemorySessionStore


PASSWORD_ALPHABET = "abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ23456789"


class LoginRateLimiter:
    """Blocks a client address after too many failed logins.

    Only failures inside the sliding window count; successful logins are
    recorded but never block.
    """

    def __init__(self, max_failures: int = 5, window_minutes: int = 15):
        self.max_failures = max_failures
        self.window = timedelta(minutes=window_minutes)
        self._attempts: dict[str, list[LoginAttempt]] = defaultdict(list)

    def _recent(self, ip: str) -> list[LoginAttempt]:
        cutoff = utc_now() - self.window
        recent = [a for a in self._attempts.get(ip, []) if a.timestamp > cutoff]
        if recent:
            self._attempts[ip] = recent
        else:
            self._attempts.pop(ip, None)
        return recent

    def is_allowed(self, ip: str) -> bool:
        failures = sum(1 for attempt in self._recent(ip) if not attempt.success)
        return failures < self.max_failures

    def record(self, ip: str, success: bool, user_agent: str | None = None) -> None:
        self._attempts[ip].append(LoginAttempt(ip=ip, success=success, user_agent=user_agent))

    def prune(self) -> int:
        """Drop attempts that left the window.

        Returns:
            How many addresses had attempts dropped.
        """
        pruned = 0
        for ip in list(self._attempts):
            before = len(self._attempts[ip])
            if len(self._recent(ip)) < before:
                pruned += 1
        return pruned


class AuthManager:
    """Password hashing plus the lifecycle of login sessions.

    Args:
        bcrypt_rounds: bcrypt cost factor.
        session_lifetime_hours: How long a session stays valid.
        rate_limit_attempts: Failed logins allowed per window and address.
        rate_limit_window_minutes: Length of that window.
        session_store: Where sessions are kept. In memory when omitted.
    """

    def __init__(
        self,
        bcrypt_rounds: int = 12,
        session_lifetime_hours: int = 4,
        rate_limit_attempts: int = 5,
        rate_limit_window_minutes: int = 15,
        session_store: BaseSessionStore | None = None,
    ):
        self.bcrypt_rounds = bcrypt_rounds
        self.session_lifetime = timedelta(hours=session_lifetime_hours)
        self.sessions = session_store or MemorySessionStore()
        self.rate_limiter = LoginRateLimiter(rate_limit_attempts, rate_limit_window_minutes)

    def hash_password(self, password: str) -> str:
        salt = _bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return _bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a password; a malformed hash simply fails."""
        try:
            return _bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

    def generate_password(self, length: int = 16) -> str:
        """Random password without characters that are easy to misread."""
        return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))

    def create_session(self, user_id: str, role: Role, ip: str, user_agent: str) -> Session:
        """Start a session for a user who just proved their password."""
        now = utc_now()
        session = Session(
            session_id=secrets.token_urlsafe(32),
            user_id=user_id,
            role=role,
            ip=ip,
            user_agent=user_agent,
            csrf_token=secrets.token_urlsafe(32),
            created_at=now,
            expires_at=now + self.session_lifetime,
        )
        self.sessions.save_session(session)
        return session

    def verify_session(self, session_id: str | None) -> Session | None:
        """The live session for ``session_id``, or None."""
        if not session_id:
            return None
        return self.sessions.get_session(session_id)

    def invalidate_session(self, session_id: str) -> bool:
        return self.sessions.delete_session(session_id)

    def invalidate_user_sessions(self, user_id: str) -> int:
        return self.sessions.delete_user_sessions(user_id)

    def cleanup_expired_sessions(self) -> int:
        return self.sessions.cleanup_expired()

    def get_session_count(self, user_id: str | None = None) -> int:
        return self.sessions.get_session_count(user_id)
