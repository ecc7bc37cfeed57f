"""Admin routes for editing posts."""

import asyncio
from typing import Any, Mapping
from urllib.parse import quote as _quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from ..core.audit_log import AuditLogger
from ..core.config import AppConfig
from ..core.csrf import csrf
from ..core.dependencies import (
    get_app_config,
    get_audit_logger,
    get_client_info,
    get_post_repository,
    get_theme_manager,
    require_user_id,
    wants_json,
)
from ..core.errors import invariant
from ..core.forms import extract_post_fields, validate_post_fields
from ..core.logging import admin_logger
from ..core.models import PostFormErrors
from ..core.posts import PostRepository
from ..core.themes import ThemeManager, render_form_page

router = APIRouter(prefix="/posts/admin", tags=["admin"])


def _render_edit_page(
    request: Request,
    themes: ThemeManager,
    *,
    slug: str,
    values: Mapping[str, Any],
    errors: PostFormErrors | None = None,
) -> HTMLResponse:
    return render_form_page(
        request,
        themes,
        "post_edit.html",
        slug=slug,
        values=values,
        errors=errors or PostFormErrors(),
    )


def _form_values(fields: Mapping[str, Any]) -> dict[str, str]:
    """Submitted values as strings for redisplay."""
    return {
        name: value if isinstance(value, str) else ""
        for name, value in fields.items()
    }


@router.get("", response_class=HTMLResponse)
async def post_index(
    request: Request,
    user_id: str = Depends(require_user_id),
    posts: PostRepository = Depends(get_post_repository),
    themes: ThemeManager = Depends(get_theme_manager),
):
    """List the current user's posts with links to their edit pages."""
    return render_form_page(
        request,
        themes,
        "admin_index.html",
        user_id=user_id,
        posts=posts.list_posts(user_id=user_id),
    )


@router.get("/{slug}", response_class=HTMLResponse)
async def load_post_for_edit(
    slug: str,
    request: Request,
    posts: PostRepository = Depends(get_post_repository),
    themes: ThemeManager = Depends(get_theme_manager),
):
    """Render the edit form pre-filled from a post the current user owns.

    A missing slug or a post that is not found (including one owned by
    someone else) is an invariant failure, not a 404.
    """
    invariant(slug, "params.slug is required")

    user_id = await require_user_id(request)
    post = posts.get_post(user_id=user_id, slug=slug)
    invariant(post, f"Post not found: {slug}")

    return _render_edit_page(
        request,
        themes,
        slug=slug,
        values={"title": post.title, "slug": post.slug, "markdown": post.markdown},
    )


@router.post("/{slug}")
async def submit_post_edit(
    slug: str,
    request: Request,
    config: AppConfig = Depends(get_app_config),
    posts: PostRepository = Depends(get_post_repository),
    themes: ThemeManager = Depends(get_theme_manager),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """Validate a submitted edit and persist it.

    Waits ``action_delay_ms`` first so the pending state is visible.
    Empty fields answer 200 with per-field errors (JSON for JSON clients,
    the annotated form otherwise) and persist nothing. A valid edit updates
    the post stored under the submitted slug and redirects to it.
    """
    await asyncio.sleep(config.action_delay_seconds)

    user_id = await require_user_id(request)
    form = await request.form()
    csrf.verify(request, form.get(csrf.FORM_FIELD))

    fields = extract_post_fields(form)
    errors = validate_post_fields(fields)
    if errors.has_errors:
        admin_logger.info(f"Rejected edit of {slug!r} by {user_id}: {errors.model_dump()}")
        if wants_json(request):
            return JSONResponse(errors.model_dump())
        return _render_edit_page(
            request, themes, slug=slug, values=_form_values(fields), errors=errors
        )

    title = fields["title"]
    new_slug = fields["slug"]
    markdown = fields["markdown"]
    invariant(isinstance(new_slug, str), "slug must be a string")
    invariant(isinstance(title, str), "title must be a string")
    invariant(isinstance(markdown, str), "markdown must be a string")

    posts.update_post(slug=new_slug, title=title, markdown=markdown, modified_by=user_id)

    client = get_client_info(request)
    audit_logger.log_post_update(new_slug, user_id, client.ip, client.user_agent)

    return RedirectResponse(url=f"/posts/{_quote(new_slug)}", status_code=302)


@router.post("/{slug}/preview", response_class=HTMLResponse)
async def preview_post_edit(
    slug: str,
    request: Request,
    themes: ThemeManager = Depends(get_theme_manager),
):
    """Render the read-only preview shown while an edit is being saved.

    Built only from the submitted values; nothing is loaded or persisted.
    """
    await require_user_id(request)
    form = await request.form()
    csrf.verify(request, form.get(csrf.FORM_FIELD))

    values = _form_values(extract_post_fields(form))
    return HTMLResponse(themes.render("_post_view.html", post=values))
