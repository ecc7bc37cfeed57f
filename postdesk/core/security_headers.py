"""Response headers that harden every page."""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


ADMIN_PREFIX = "/posts/admin"

CSP_DIRECTIVES = {
    "default-src": "'self'",
    "script-src": "'self'",
    "style-src": "'self' 'unsafe-inline'",
    "img-src": "'self' data: https:",
    "connect-src": "'self'",
    "frame-ancestors": "'none'",
    "base-uri": "'self'",
    "form-action": "'self'",
}

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
}


def build_csp(directives: dict[str, str]) -> str:
    """Serialize directives; an empty value emits the bare directive name."""
    return "; ".join(f"{name} {value}".rstrip() for name, value in directives.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds CSP, framing, sniffing and referrer headers to all responses.

    With ``force_https`` it also sends HSTS. Admin pages are marked
    uncacheable because they show unpublished drafts.

    Args:
        app: The ASGI app to wrap.
        force_https: Send ``Strict-Transport-Security``.
        csp_directives: Overrides merged into :data:`CSP_DIRECTIVES`.
    """

    def __init__(self, app, force_https: bool = False, csp_directives: dict[str, str] | None = None):
        super().__init__(app)
        directives = {**CSP_DIRECTIVES, **(csp_directives or {})}

        self.common = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }
        if force_https:
            self.common["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        self.csp_plain = build_csp(directives)
        self.csp_secure = build_csp({**directives, "upgrade-insecure-requests": ""})

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers.update(self.common)
        response.headers["Content-Security-Policy"] = (
            self.csp_secure if request.url.scheme == "https" else self.csp_plain
        )
        if request.url.path.startswith(ADMIN_PREFIX):
            response.headers.update(NO_CACHE_HEADERS)

        return response
