"""Double-submit cookie CSRF protection.

A random token is set as a cookie that scripts may read. Every
state-changing request must echo it, either in the ``X-CSRF-Token`` header
or in the ``csrf_token`` form field, and the two copies must match.
"""

import secrets

from fastapi import HTTPException, Request
from starlette.responses import Response


class CSRFProtection:
    COOKIE_NAME = "csrf_token"
    HEADER_NAME = "X-CSRF-Token"
    FORM_FIELD = "csrf_token"
    TOKEN_LENGTH = 32
    COOKIE_MAX_AGE = 4 * 60 * 60

    PROTECTED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

    def generate_token(self) -> str:
        return secrets.token_urlsafe(self.TOKEN_LENGTH)

    def get_token_from_cookie(self, request: Request) -> str | None:
        return request.cookies.get(self.COOKIE_NAME)

    def get_or_create_token(self, request: Request) -> tuple[str, bool]:
        """The client's current token, or a new one.

        Returns:
            ``(token, needs_cookie)``; ``needs_cookie`` tells the caller to
            :meth:`set_cookie` on its response.
        """
        existing = self.get_token_from_cookie(request)
        return (existing, False) if existing else (self.generate_token(), True)

    def validate_token(self, submitted: str | None, cookie: str | None) -> bool:
        """Constant-time comparison; empty values never match."""
        if not submitted or not cookie:
            return False
        return secrets.compare_digest(submitted.encode("utf-8"), cookie.encode("utf-8"))

    def set_cookie(self, response: Response, token: str, secure: bool) -> None:
        # Not HttpOnly: scripts copy it into the header
        response.set_cookie(
            self.COOKIE_NAME,
            token,
            max_age=self.COOKIE_MAX_AGE,
            secure=secure,
            httponly=False,
            samesite="lax",
        )

    def should_validate(self, request: Request) -> bool:
        return request.method in self.PROTECTED_METHODS

    def verify(self, request: Request, form_token: str | None = None) -> None:
        """Reject a state-changing request whose token does not match the cookie.

        The header is preferred over ``form_token`` when both are sent.

        Raises:
            HTTPException: 403, "Missing CSRF token" or "Invalid CSRF token".
        """
        if not self.should_validate(request):
            return

        if not isinstance(form_token, str):
            form_token = None
        submitted = request.headers.get(self.HEADER_NAME) or form_token
        cookie = self.get_token_from_cookie(request)
        if not submitted or not cookie:
            raise HTTPException(status_code=403, detail="Missing CSRF token")
        if not self.validate_token(submitted, cookie):
            raise HTTPException(status_code=403, detail="Invalid CSRF token")


csrf = CSRFProtection()
