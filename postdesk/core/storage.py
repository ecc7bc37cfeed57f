"""The site database: one JSON file, read under a shared lock and replaced atomically."""

import fcntl
import json
import os
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .logging import storage_logger


class StorageError(Exception):
    """The database file is missing, unreadable or not valid JSON."""

    pass


def read_json_locked(path: Path) -> Any:
    """Load JSON from ``path`` while holding a shared ``flock``.

    Raises:
        json.JSONDecodeError: The content is not JSON.
        OSError: The file cannot be opened.
    """
    with open(path, "r", encoding="utf-8") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_SH)
        try:
            return json.load(f)
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def write_json_atomic(path: Path, data: Any) -> None:
    """Dump ``data`` to a sibling temp file, then move it over ``path``.

    Readers see either the old content or the new, never a partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with open(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        shutil.move(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


@contextmanager
def exclusive_lock(lock_path: Path) -> Iterator[None]:
    """Hold an exclusive ``flock`` on a sidecar file.

    The data file itself is replaced on every write, so writers serialize
    on this separate file instead. Not reentrant within one process.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Storage:
    """Cached copy of the database that follows the file on disk.

    Several processes share ``db.json``: the server workers and the CLI.
    The cache is reread whenever the file changed since it was loaded, and
    every mutation rereads, applies and writes back while holding the
    ``db.lock`` sidecar lock, so no writer overwrites another's changes.

    Collection keys are used verbatim (``get_item("posts", "v1.0")``).
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._lock_path = db_path.with_suffix(".lock")
        self._data: dict | None = None
        self._stamp: tuple | None = None

    @property
    def exists(self) -> bool:
        return self.db_path.exists()

    def _disk_stamp(self) -> tuple | None:
        try:
            st = os.stat(self.db_path)
        except FileNotFoundError:
            return None
        return (st.st_ino, st.st_size, st.st_mtime_ns, st.st_ctime_ns)

    @property
    def data(self) -> dict:
        if self._data is None or self._disk_stamp() != self._stamp:
            self.load()
        return self._data

    def load(self) -> dict:
        """(Re)read the file.

        Raises:
            StorageError: The file is missing, unreadable or corrupt.
        """
        stamp = self._disk_stamp()
        if stamp is None:
            raise StorageError(f"Database file not found: {self.db_path}")
        try:
            self._data = read_json_locked(self.db_path)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in database: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read database: {e}") from e
        # Stat taken before the read: a write in between forces another reload
        self._stamp = stamp
        return self._data

    def _write(self) -> None:
        if isinstance(self._data.get("config"), dict):
            self._data["config"]["last_modified"] = _timestamp()
        try:
            write_json_atomic(self.db_path, self._data)
        except OSError as e:
            raise StorageError(f"Cannot save database: {e}") from e
        self._stamp = self._disk_stamp()

    def save(self, data: dict | None = None) -> None:
        """Write the document (or ``data``, which then becomes the document).

        Raises:
            StorageError: Nothing loaded yet, or the write failed.
        """
        if data is not None:
            self._data = data
        if self._data is None:
            raise StorageError("No data to save")
        with exclusive_lock(self._lock_path):
            self._write()

    def collection(self, name: str) -> dict[str, Any]:
        """Current contents of a top-level collection such as ``posts``."""
        return dict(self.data.get(name, {}))

    def get_item(self, collection: str, key: str, default: Any = None) -> Any:
        return self.data.get(collection, {}).get(key, default)

    def set_item(self, collection: str, key: str, value: Any) -> None:
        """Store one entry, merging with whatever is on disk right now."""
        with exclusive_lock(self._lock_path):
            self.load()
            self._data.setdefault(collection, {})[key] = value
            self._write()

    def initialize(self, site_title: str = "postdesk") -> dict:
        """Start an empty database, replacing any existing file."""
        self.save({
            "config": {"site_title": site_title, "last_modified": _timestamp()},
            "users": {},
            "posts": {},
        })
        storage_logger.info(f"Initialized database at {self.db_path}")
        return self._data

    def backup(self, backup_dir: Path) -> Path:
        """Copy the current document to ``backup_dir/db_backup_<utc time>.json``."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        backup_path = backup_dir / f"db_backup_{stamp}.json"
        write_json_atomic(backup_path, self.data)
        storage_logger.info(f"Backed up database to {backup_path}")
        return backup_path
