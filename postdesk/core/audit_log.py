"""Security and content audit trail, one JSON object per line."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

from pydantic import ValidationError

from .models import AuditEvent


LOGIN_SUCCESS = "login_success"
LOGIN_FAILED = "login_failed"
LOGOUT = "logout"
POST_UPDATE = "post_update"


class AuditLogger:
    """Appends :class:`AuditEvent` records to a JSON Lines file.

    Args:
        log_path: The ``.log`` file; created on first write.
        max_age_days: Entries older than this are dropped by
            :meth:`cleanup_old_entries`.
    """

    def __init__(self, log_path: Path, max_age_days: int = 90):
        self.log_path = log_path
        self.max_age_days = max_age_days

    def log(
        self,
        event: str,
        actor: str,
        ip: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        record = AuditEvent(
            event=event,
            actor=actor,
            ip=ip,
            user_agent=user_agent,
            details=details or {},
        )
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")

    def log_login_success(self, username: str, ip: str, user_agent: str | None = None) -> None:
        self.log(LOGIN_SUCCESS, username, ip, user_agent)

    def log_login_failed(
        self,
        username: str,
        ip: str,
        user_agent: str | None = None,
        reason: str = "invalid_password",
    ) -> None:
        self.log(LOGIN_FAILED, username, ip, user_agent, {"reason": reason})

    def log_logout(self, username: str, ip: str | None = None) -> None:
        self.log(LOGOUT, username, ip)

    def log_post_update(
        self,
        slug: str,
        actor: str,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.log(POST_UPDATE, actor, ip, user_agent, {"slug": slug})

    def _lines(self) -> Iterator[str]:
        if not self.log_path.exists():
            return
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield line

    def read_recent(self, limit: int = 100) -> list[dict]:
        """The last ``limit`` readable entries, newest first."""
        entries = []
        for line in self._lines():
            try:
                entries.append(AuditEvent.model_validate_json(line).model_dump(mode="json"))
            except ValidationError:
                continue
        return entries[-limit:][::-1]

    def cleanup_old_entries(self) -> int:
        """Drop entries older than ``max_age_days``.

        Lines that do not parse are left alone.

        Returns:
            Number of entries dropped.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.max_age_days)
        kept, dropped = [], 0
        for line in self._lines():
            try:
                too_old = AuditEvent.model_validate_json(line).timestamp < cutoff
            except ValidationError:
                too_old = False
            if too_old:
                dropped += 1
            else:
                kept.append(line)

        if dropped:
            self.log_path.write_text("".join(f"{line}\n" for line in kept), encoding="utf-8")
        return dropped
