"""Login and logout routes."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from ..core.csrf import csrf
from ..core.dependencies import (
    SESSION_COOKIE,
    AppState,
    get_app_state,
    get_client_info,
    get_current_session,
)
from ..core.logging import auth_logger
from ..core.models import Role, utc_now
from ..core.themes import render_form_page

auth_router = APIRouter(tags=["auth"])

DEFAULT_REDIRECT = "/posts/admin"


def safe_redirect_target(target: object) -> str:
    """Only allow local absolute paths as post-login destinations.

    Anything else (other hosts, protocol-relative URLs) falls back to the
    admin post list.
    """
    if not isinstance(target, str) or not target.startswith("/"):
        return DEFAULT_REDIRECT
    if target.startswith("//") or "\\" in target:
        return DEFAULT_REDIRECT
    return target


def _render_login(
    request: Request,
    state: AppState,
    *,
    redirect_to: str,
    error: str | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    return render_form_page(
        request,
        state.theme_manager,
        "login.html",
        status_code=status_code,
        redirect_to=redirect_to,
        error=error,
    )


@auth_router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    redirect_to: str | None = None,
    state: AppState = Depends(get_app_state),
):
    """Render login form."""
    return _render_login(request, state, redirect_to=safe_redirect_target(redirect_to))


@auth_router.post("/login")
async def handle_login(
    request: Request,
    state: AppState = Depends(get_app_state),
):
    """Handle login form submission."""
    if not state.storage.exists:
        raise HTTPException(status_code=503, detail="Site not initialized")

    form = await request.form()
    csrf.verify(request, form.get(csrf.FORM_FIELD))

    username = str(form.get("username", "")).strip().lower()
    password = str(form.get("password", ""))
    redirect_to = safe_redirect_target(form.get("redirect_to"))

    client = get_client_info(request)

    if not state.auth.rate_limiter.is_allowed(client.ip):
        state.audit_logger.log_login_failed(
            username, client.ip, client.user_agent, "rate_limited"
        )
        raise HTTPException(status_code=429, detail="Too many login attempts")

    user = state.storage.get_item("users", username) if username else None
    if not user or not state.auth.verify_password(password, user.get("password_hash", "")):
        state.auth.rate_limiter.record(client.ip, False, client.user_agent)
        state.audit_logger.log_login_failed(username, client.ip, client.user_agent)
        auth_logger.info(f"Failed login for {username!r} from {client.ip}")
        return _render_login(
            request,
            state,
            redirect_to=redirect_to,
            error="Invalid username or password",
            status_code=401,
        )

    state.auth.rate_limiter.record(client.ip, True, client.user_agent)
    state.audit_logger.log_login_success(username, client.ip, client.user_agent)

    user["last_login"] = utc_now().isoformat()
    state.storage.set_item("users", username, user)

    session = state.auth.create_session(
        user_id=username,
        role=Role(user.get("role", Role.AUTHOR.value)),
        ip=client.ip,
        user_agent=client.user_agent,
    )

    response = RedirectResponse(url=redirect_to, status_code=303)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session.session_id,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        max_age=int(state.auth.session_lifetime.total_seconds()),
    )
    return response


@auth_router.post("/logout")
async def logout(
    request: Request,
    state: AppState = Depends(get_app_state),
):
    """End the current session."""
    form = await request.form()
    csrf.verify(request, form.get(csrf.FORM_FIELD))

    session = await get_current_session(request)
    if session:
        state.auth.invalidate_session(session.session_id)
        state.audit_logger.log_logout(session.user_id, get_client_info(request).ip)

    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response
