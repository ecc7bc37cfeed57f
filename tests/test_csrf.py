"""Tests for CSRF protection."""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from starlette.responses import Response

from postdesk.core.csrf import CSRFProtection


def _request(method="POST", header=None, cookie=None):
    request = MagicMock()
    request.method = method
    request.headers.get = lambda k: header if k == "X-CSRF-Token" else None
    request.cookies.get = lambda k: cookie if k == "csrf_token" else None
    return request


class TestCSRFTokenGeneration:
    """Tests for CSRF token generation."""

    def test_generate_token_length(self):
        """Test token has correct length."""
        csrf = CSRFProtection()
        token = csrf.generate_token()

        # URL-safe base64 encoding, 32 bytes
        assert len(token) >= 32

    def test_generate_token_unique(self):
        """Test tokens are unique."""
        csrf = CSRFProtection()
        tokens = [csrf.generate_token() for _ in range(100)]

        assert len(set(tokens)) == 100

    def test_generate_token_url_safe(self):
        """Test tokens are URL-safe."""
        csrf = CSRFProtection()
        token = csrf.generate_token()

        assert all(c.isalnum() or c in "-_" for c in token)


class TestCSRFValidation:
    """Tests for CSRF token validation."""

    def test_validate_matching_tokens(self):
        """Test matching tokens validate."""
        csrf = CSRFProtection()
        token = csrf.generate_token()

        assert csrf.validate_token(token, token) is True

    def test_validate_different_tokens(self):
        """Test different tokens don't validate."""
        csrf = CSRFProtection()

        assert csrf.validate_token(csrf.generate_token(), csrf.generate_token()) is False

    def test_validate_empty_tokens(self):
        """Test empty tokens on either side fail."""
        csrf = CSRFProtection()
        token = csrf.generate_token()

        assert csrf.validate_token("", token) is False
        assert csrf.validate_token(None, token) is False
        assert csrf.validate_token(token, "") is False
        assert csrf.validate_token(token, None) is False


class TestShouldValidate:
    """Tests for request validation checking."""

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH"])
    def test_validates_unsafe_methods(self, method):
        """Test state-changing requests need validation."""
        assert CSRFProtection().should_validate(_request(method)) is True

    def test_skips_get_requests(self):
        """Test GET requests don't need validation."""
        assert CSRFProtection().should_validate(_request("GET")) is False


class TestVerify:
    """Tests for verifying a submitted token against the cookie."""

    def test_form_token_matches_cookie(self):
        """A form field equal to the cookie passes."""
        csrf = CSRFProtection()
        token = csrf.generate_token()

        csrf.verify(_request(cookie=token), form_token=token)

    def test_header_token_matches_cookie(self):
        """The header is accepted without a form field."""
        csrf = CSRFProtection()
        token = csrf.generate_token()

        csrf.verify(_request(header=token, cookie=token))

    def test_missing_cookie(self):
        """Without a cookie there is nothing to compare against."""
        csrf = CSRFProtection()

        with pytest.raises(HTTPException) as exc_info:
            csrf.verify(_request(), form_token="abc")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Missing CSRF token"

    def test_mismatched_token(self):
        """A token that differs from the cookie is rejected."""
        csrf = CSRFProtection()

        with pytest.raises(HTTPException) as exc_info:
            csrf.verify(_request(cookie="cookie-token"), form_token="other-token")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Invalid CSRF token"

    def test_get_is_never_checked(self):
        """Safe methods pass without any token."""
        CSRFProtection().verify(_request("GET"))


class TestTokenCookie:
    """Tests for issuing the token cookie."""

    def test_reuses_existing_cookie(self):
        """An existing cookie token is reused."""
        csrf = CSRFProtection()

        assert csrf.get_or_create_token(_request(cookie="existing")) == ("existing", False)

    def test_creates_token_without_cookie(self):
        """A fresh token is made when the client has none."""
        csrf = CSRFProtection()
        token, needs_cookie = csrf.get_or_create_token(_request())

        assert needs_cookie is True
        assert len(token) >= 32

    def test_set_cookie_is_readable_by_scripts(self):
        """The cookie is not HttpOnly so the page can echo it in a header."""
        csrf = CSRFProtection()
        response = Response()
        csrf.set_cookie(response, "tok", secure=False)

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("csrf_token=tok")
        assert "httponly" not in cookie.lower()
        assert "samesite=lax" in cookie.lower()
