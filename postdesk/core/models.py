"""Records stored in ``db.json`` and passed between the layers."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Admins may add users from the CLI. Either role opens the edit page only for its own posts."""

    ADMIN = "admin"
    AUTHOR = "author"


class User(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password_hash: str
    role: Role = Role.AUTHOR
    created_at: datetime = Field(default_factory=utc_now)
    last_login: datetime | None = None

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: str) -> str:
        """Letters, digits and underscores; stored lowercase."""
        if not re.fullmatch(r"\w+", value, re.ASCII):
            raise ValueError("Username may only contain letters, digits and underscores")
        return value.lower()


class Post(BaseModel):
    """A markdown post and the user it belongs to.

    Only a non-empty slug is required here because the edit form accepts
    any slug the author types. New posts from the CLI must match
    :data:`SLUG_PATTERN`.
    """

    slug: str = Field(..., min_length=1, max_length=200)
    title: str = Field(..., min_length=1)
    markdown: str = ""
    owner: str
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)
    modified_by: str = "system"


class PostFormErrors(BaseModel):
    """Messages for the fields of a rejected edit, ``None`` where valid."""

    title: str | None = None
    slug: str | None = None
    markdown: str | None = None

    @property
    def has_errors(self) -> bool:
        return any(self.model_dump().values())


class Session(BaseModel):
    session_id: str
    user_id: str
    role: Role
    ip: str
    user_agent: str
    csrf_token: str
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime


class LoginAttempt(BaseModel):
    ip: str
    success: bool
    user_agent: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class AuditEvent(BaseModel):
    """One line of ``audit.log``."""

    event: str
    actor: str
    ip: str | None = None
    user_agent: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class SiteConfig(BaseModel):
    site_title: str = "postdesk"
    last_modified: datetime = Field(default_factory=utc_now)


class DatabaseSchema(BaseModel):
    """Shape of the whole database document."""

    config: SiteConfig = Field(default_factory=SiteConfig)
    users: dict[str, User] = Field(default_factory=dict)
    posts: dict[str, Post] = Field(default_factory=dict)
