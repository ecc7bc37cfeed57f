"""Tests for the audit log."""

import json
from datetime import datetime, timedelta, timezone

from postdesk.core.audit_log import AuditLogger


class TestAuditLogger:
    """Tests for writing and pruning audit entries."""

    def test_log_post_update(self, tmp_path):
        """Post edits record slug and actor."""
        audit = AuditLogger(tmp_path / "audit.log")
        audit.log_post_update("hello-world", "alice", "127.0.0.1", "agent")

        entry = audit.read_recent()[0]
        assert entry["event"] == "post_update"
        assert entry["actor"] == "alice"
        assert entry["details"] == {"slug": "hello-world"}

    def test_read_recent_newest_first(self, tmp_path):
        """Recent entries come back newest first, up to the limit."""
        audit = AuditLogger(tmp_path / "audit.log")
        audit.log_login_success("alice", "1.1.1.1")
        audit.log_login_failed("bob", "2.2.2.2")
        audit.log_logout("alice")

        events = [e["event"] for e in audit.read_recent(limit=2)]
        assert events == ["logout", "login_failed"]

    def test_read_recent_without_file(self, tmp_path):
        """A missing log reads as empty."""
        assert AuditLogger(tmp_path / "none.log").read_recent() == []

    def test_cleanup_old_entries(self, tmp_path):
        """Entries past the age limit are removed, garbage is kept."""
        path = tmp_path / "audit.log"
        old = datetime.now(timezone.utc) - timedelta(days=100)
        path.write_text(
            json.dumps({"timestamp": old.isoformat(), "event": "logout", "actor": "a"})
            + "\nnot json\n",
            encoding="utf-8",
        )
        audit = AuditLogger(path, max_age_days=90)
        audit.log_logout("b")

        assert audit.cleanup_old_entries() == 1

        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "not json"
        assert json.loads(lines[1])["actor"] == "b"
