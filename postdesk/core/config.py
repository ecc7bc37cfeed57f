"""Process-level settings for postdesk.

Users and posts live in the JSON database; everything here comes from
``POSTDESK_*`` environment variables or the defaults below.
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field


ENV_PREFIX = "POSTDESK_"


def _env_int(name: str, default: int, low: int, high: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got: {raw}")
    if not low <= value <= high:
        raise ValueError(f"{ENV_PREFIX}{name} must be between {low} and {high}, got: {value}")
    return value


def _env_bool(name: str) -> bool:
    return os.getenv(ENV_PREFIX + name, "false").strip().lower() in ("1", "true", "yes")


def _env_str(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


class AppConfig(BaseModel):
    """Settings for one site rooted at ``base_dir``.

    ``data_dir`` and ``themes_dir`` default to ``base_dir/data`` and
    ``base_dir/themes``.
    """

    base_dir: Path = Field(default_factory=Path.cwd)
    data_dir: Path | None = None
    themes_dir: Path | None = None

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    workers: int = 1
    log_level: str = "INFO"

    session_lifetime_hours: int = 4
    rate_limit_attempts: int = 5
    rate_limit_window_minutes: int = 15
    password_min_length: int = 10
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    force_https: bool = False

    # Pause before a post edit is handled, so the pending state shows
    action_delay_ms: int = Field(default=1000, ge=0, le=60000)

    def __init__(self, **data):
        super().__init__(**data)
        self.data_dir = self.data_dir or self.base_dir / "data"
        self.themes_dir = self.themes_dir or self.base_dir / "themes"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "db.json"

    @property
    def backups_dir(self) -> Path:
        return self.data_dir / "backups"

    @property
    def audit_log_path(self) -> Path:
        return self.data_dir / "audit.log"

    @property
    def sessions_file(self) -> Path:
        return self.data_dir / "sessions.json"

    @property
    def action_delay_seconds(self) -> float:
        return self.action_delay_ms / 1000

    def ensure_directories(self) -> None:
        """Create the data and backup directories."""
        self.backups_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, base_dir: Path | None = None) -> "AppConfig":
        """Build a config from ``POSTDESK_*`` variables.

        Args:
            base_dir: Overrides ``POSTDESK_BASE_DIR``.

        Raises:
            ValueError: A numeric variable is malformed or out of range.
        """
        return cls(
            base_dir=base_dir or Path(_env_str("BASE_DIR", str(Path.cwd()))),
            host=_env_str("HOST", "127.0.0.1"),
            port=_env_int("PORT", 8000, 1, 65535),
            debug=_env_bool("DEBUG"),
            workers=_env_int("WORKERS", 1, 1, 32),
            log_level=_env_str("LOG_LEVEL", "INFO"),
            session_lifetime_hours=_env_int("SESSION_HOURS", 4, 1, 168),
            rate_limit_attempts=_env_int("RATE_LIMIT_ATTEMPTS", 5, 1, 100),
            rate_limit_window_minutes=_env_int("RATE_LIMIT_WINDOW", 15, 1, 1440),
            force_https=_env_bool("FORCE_HTTPS"),
            action_delay_ms=_env_int("ACTION_DELAY_MS", 1000, 0, 60000),
        )
