"""Request dependencies shared by the routers.

The lifespan in :mod:`postdesk.main` builds one :class:`AppState` and puts
it on ``app.state.postdesk``. Tests replace pieces of it through
``app.dependency_overrides``.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

from fastapi import Depends, HTTPException, Request

from .audit_log import AuditLogger
from .auth import AuthManager
from .config import AppConfig
from .errors import LoginRequired
from .models import Session
from .posts import PostRepository
from .sanitize import Sanitizer
from .storage import Storage
from .themes import ThemeManager


SESSION_COOKIE = "session_id"


@dataclass
class AppState:
    """Services living for the lifetime of the app."""

    config: AppConfig
    storage: Storage
    auth: AuthManager
    sanitizer: Sanitizer
    posts: PostRepository
    theme_manager: ThemeManager
    audit_logger: AuditLogger


class ClientInfo(NamedTuple):
    ip: str
    user_agent: str


def get_app_state(request: Request) -> AppState:
    """The app's :class:`AppState`; 503 while the lifespan has not run."""
    state = getattr(request.app.state, "postdesk", None)
    if state is None:
        raise HTTPException(status_code=503, detail="Application not initialized")
    return state


def get_app_config(state: AppState = Depends(get_app_state)) -> AppConfig:
    return state.config


def get_post_repository(state: AppState = Depends(get_app_state)) -> PostRepository:
    """Post access, or 503 until ``postdesk init`` has created the database."""
    if not state.storage.exists:
        raise HTTPException(status_code=503, detail="Site not initialized")
    return state.posts


def get_theme_manager(state: AppState = Depends(get_app_state)) -> ThemeManager:
    return state.theme_manager


def get_audit_logger(state: AppState = Depends(get_app_state)) -> AuditLogger:
    return state.audit_logger


async def get_current_session(request: Request) -> Optional[Session]:
    """The caller's live session, or ``None`` when logged out."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None
    return get_app_state(request).auth.verify_session(session_id)


async def require_user_id(request: Request) -> str:
    """Id of the logged-in user.

    Raises:
        LoginRequired: No valid session. Carries the requested path and
            query so login can return the user there.
    """
    session = await get_current_session(request)
    if session is None:
        target = request.url.path
        if request.url.query:
            target += "?" + request.url.query
        raise LoginRequired(redirect_to=target)
    return session.user_id


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("user-agent", ""),
    )


def wants_json(request: Request) -> bool:
    """True if the client prefers a JSON response over HTML."""
    accept = request.headers.get("accept", "")
    return "application/json" in accept and "text/html" not in accept
