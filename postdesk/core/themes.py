"""Jinja2 rendering for the site's pages."""

from functools import cached_property
from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from .csrf import csrf
from .sanitize import Sanitizer


PACKAGE_TEMPLATES = Path(__file__).resolve().parent.parent / "templates"


class ThemeManager:
    """Renders page templates.

    A template in the site's ``themes/`` directory wins over the packaged
    template of the same name.

    Args:
        themes_dir: Site directory with overrides. Ignored when missing.
        fallback_dir: The packaged templates.
        sanitizer: Backs the ``render_markdown`` filter.
    """

    def __init__(
        self,
        themes_dir: Path | None = None,
        fallback_dir: Path = PACKAGE_TEMPLATES,
        sanitizer: Sanitizer | None = None,
    ):
        self.themes_dir = themes_dir
        self.fallback_dir = fallback_dir
        self.sanitizer = sanitizer or Sanitizer()

    @cached_property
    def env(self) -> Environment:
        search_path = [self.fallback_dir]
        if self.themes_dir and self.themes_dir.is_dir():
            search_path.insert(0, self.themes_dir)

        env = Environment(
            loader=FileSystemLoader([str(p) for p in search_path]),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        env.filters["render_markdown"] = self._render_markdown
        return env

    def _render_markdown(self, content: str) -> Markup:
        # Output is already sanitized, so autoescape must not touch it
        return Markup(self.sanitizer.render_markdown(content))

    def render(self, template_name: str, **context: Any) -> str:
        return self.env.get_template(template_name).render(**context)


def render_form_page(
    request: Request,
    themes: ThemeManager,
    template_name: str,
    status_code: int = 200,
    **context: Any,
) -> HTMLResponse:
    """Render a page holding a form, setting the CSRF cookie when the client has none.

    The template receives ``csrf_token`` and ``csrf_field`` for its hidden input.
    """
    token, needs_cookie = csrf.get_or_create_token(request)
    html = themes.render(
        template_name,
        csrf_token=token,
        csrf_field=csrf.FORM_FIELD,
        **context,
    )
    response = HTMLResponse(html, status_code=status_code)
    if needs_cookie:
        csrf.set_cookie(response, token, secure=request.url.scheme == "https")
    return response
