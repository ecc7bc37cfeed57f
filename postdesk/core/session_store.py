"""Where login sessions live.

``SessionStore`` keeps them in a JSON file so every uvicorn worker sees the
same sessions and they survive a restart. ``MemorySessionStore`` is the
single-process variant used by the CLI and in tests.
"""

import json
from contextlib import nullcontext
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .models import Session
from .storage import exclusive_lock, read_json_locked, write_json_atomic


Records = dict[str, dict]


def _parse(record: dict) -> Session | None:
    try:
        return Session.model_validate(record)
    except ValidationError:
        return None


class BaseSessionStore:
    """Session bookkeeping over a mapping of session id to JSON record.

    Subclasses decide where the mapping is kept by implementing
    :meth:`_read` and :meth:`_write`.
    """

    def _read(self) -> Records:
        raise NotImplementedError

    def _write(self, records: Records) -> None:
        raise NotImplementedError

    def _locked(self):
        """Context held across a read-modify-write."""
        return nullcontext()

    def _remove_where(self, doomed: Callable[[str, dict], bool]) -> int:
        with self._locked():
            records = self._read()
            keep = {sid: rec for sid, rec in records.items() if not doomed(sid, rec)}
            removed = len(records) - len(keep)
            if removed:
                self._write(keep)
        return removed

    def save_session(self, session: Session) -> None:
        with self._locked():
            records = self._read()
            records[session.session_id] = session.model_dump(mode="json")
            self._write(records)

    def get_session(self, session_id: str) -> Session | None:
        """Look up a live session.

        Expired and unreadable records are deleted on the way and reported
        as missing.
        """
        record = self._read().get(session_id)
        if not record:
            return None

        session = _parse(record)
        if session is None or session.expires_at < datetime.now(timezone.utc):
            self.delete_session(session_id)
            return None
        return session

    def delete_session(self, session_id: str) -> bool:
        return self._remove_where(lambda sid, _: sid == session_id) > 0

    def delete_user_sessions(self, user_id: str) -> int:
        return self._remove_where(lambda _, rec: rec.get("user_id") == user_id)

    def cleanup_expired(self) -> int:
        now = datetime.now(timezone.utc)

        def expired(_, record: dict) -> bool:
            session = _parse(record)
            return session is None or session.expires_at < now

        return self._remove_where(expired)

    def get_session_count(self, user_id: str | None = None) -> int:
        records = self._read().values()
        if user_id is None:
            return len(records)
        return sum(1 for rec in records if rec.get("user_id") == user_id)


class MemorySessionStore(BaseSessionStore):
    """Sessions held in a dict; gone when the process exits."""

    def __init__(self):
        self._records: Records = {}

    def _read(self) -> Records:
        return dict(self._records)

    def _write(self, records: Records) -> None:
        self._records = records


class SessionStore(BaseSessionStore):
    """Sessions in a JSON file, written atomically under a lock.

    Args:
        session_file: The JSON file; created empty if missing.
    """

    def __init__(self, session_file: Path):
        self.session_file = session_file
        if not session_file.exists():
            write_json_atomic(session_file, {})

    def _read(self) -> Records:
        # A damaged file just means nobody is logged in
        try:
            return read_json_locked(self.session_file)
        except (json.JSONDecodeError, FileNotFoundError):
            return {}

    def _write(self, records: Records) -> None:
        write_json_atomic(self.session_file, records)

    def _locked(self):
        return exclusive_lock(self.session_file.with_suffix(".lock"))
