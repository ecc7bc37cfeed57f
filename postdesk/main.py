"""FastAPI application for postdesk."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import urlencode

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .admin.routes import router as admin_router
from .core.audit_log import AuditLogger
from .core.auth import AuthManager
from .core.config import AppConfig
from .core.dependencies import AppState, wants_json
from .core.errors import InvariantError, LoginRequired, PostNotFoundError
from .core.logging import get_logger, logger, setup_logging
from .core.posts import PostRepository
from .core.sanitize import Sanitizer
from .core.security_headers import SecurityHeadersMiddleware
from .core.session_store import SessionStore
from .core.storage import Storage, StorageError
from .core.themes import ThemeManager
from .frontend.auth_routes import auth_router
from .frontend.blog_routes import blog_router


CLEANUP_INTERVAL_SECONDS = 3600

error_logger = get_logger("errors")


def build_state(app_config: AppConfig) -> AppState:
    """Create every service the routes depend on.

    Args:
        app_config: Application configuration.

    Returns:
        AppState ready to be attached to ``app.state.postdesk``.
    """
    storage = Storage(app_config.db_path)
    if storage.exists:
        storage.load()
    else:
        logger.warning(
            f"No database at {app_config.db_path}; run 'postdesk init' first"
        )

    auth = AuthManager(
        bcrypt_rounds=app_config.bcrypt_rounds,
        session_lifetime_hours=app_config.session_lifetime_hours,
        rate_limit_attempts=app_config.rate_limit_attempts,
        rate_limit_window_minutes=app_config.rate_limit_window_minutes,
        session_store=SessionStore(app_config.sessions_file),
    )

    sanitizer = Sanitizer()

    return AppState(
        config=app_config,
        storage=storage,
        auth=auth,
        sanitizer=sanitizer,
        posts=PostRepository(storage, sanitizer),
        theme_manager=ThemeManager(themes_dir=app_config.themes_dir, sanitizer=sanitizer),
        audit_logger=AuditLogger(app_config.audit_log_path),
    )


async def periodic_cleanup(state: AppState) -> None:
    """Background task pruning expired sessions, rate limits and old audit entries."""
    while True:
        try:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)

            cleaned_sessions = state.auth.cleanup_expired_sessions()
            if cleaned_sessions > 0:
                logger.info(f"Cleaned up {cleaned_sessions} expired sessions")

            cleaned_rate_limits = state.auth.rate_limiter.prune()
            if cleaned_rate_limits > 0:
                logger.info(f"Cleaned up rate limits for {cleaned_rate_limits} IPs")

            cleaned_entries = state.audit_logger.cleanup_old_entries()
            if cleaned_entries > 0:
                logger.info(f"Cleaned up {cleaned_entries} old audit log entries")

        except asyncio.CancelledError:
            break
        except (OSError, StorageError) as e:
            logger.error(f"Error in periodic cleanup: {e}")


def create_app(app_config: AppConfig | None = None) -> FastAPI:
    """Build the postdesk application.

    Args:
        app_config: Configuration to use. Read from the environment when
            omitted.

    Returns:
        Configured FastAPI app.
    """
    config = app_config or AppConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - initialize on startup."""
        config.ensure_directories()
        setup_logging(config.log_level)

        state = build_state(config)
        app.state.postdesk = state

        cleanup_task = asyncio.create_task(periodic_cleanup(state))

        yield

        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass

        state.auth.cleanup_expired_sessions()

    app = FastAPI(
        title="postdesk",
        description="Edit your blog posts",
        version=__version__,
        debug=config.debug,
        lifespan=lifespan,
    )

    # Admin first: "/posts/admin" must not be taken for a post slug
    app.include_router(admin_router)
    app.include_router(blog_router)
    app.include_router(auth_router)

    app.add_middleware(SecurityHeadersMiddleware, force_https=config.force_https)

    app.mount(
        "/static",
        StaticFiles(directory=Path(__file__).parent / "static"),
        name="static",
    )

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        if wants_json(request):
            return JSONResponse({"detail": "Authentication required"}, status_code=401)
        query = urlencode({"redirect_to": exc.redirect_to})
        return RedirectResponse(url=f"/login?{query}", status_code=303)

    @app.exception_handler(InvariantError)
    @app.exception_handler(PostNotFoundError)
    @app.exception_handler(StorageError)
    async def server_error_handler(request: Request, exc: Exception):
        error_logger.error(f"{request.method} {request.url.path}: {exc}")
        return PlainTextResponse("Internal Server Error", status_code=500)

    @app.get("/", include_in_schema=False)
    async def home():
        """Send visitors to the post list."""
        return RedirectResponse(url="/posts", status_code=307)

    @app.get("/healthz")
    async def healthz():
        """Liveness probe."""
        return {"status": "ok"}

    return app


app = create_app()
