"""Public post routes."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from ..core.dependencies import get_post_repository, get_theme_manager
from ..core.posts import PostRepository
from ..core.themes import ThemeManager

blog_router = APIRouter(prefix="/posts", tags=["blog"])


@blog_router.get("", response_class=HTMLResponse)
async def post_list(
    posts: PostRepository = Depends(get_post_repository),
    themes: ThemeManager = Depends(get_theme_manager),
):
    """Render all posts, newest first."""
    return HTMLResponse(themes.render("post_list.html", posts=posts.list_posts()))


@blog_router.get("/{slug}", response_class=HTMLResponse)
async def post_view(
    slug: str,
    posts: PostRepository = Depends(get_post_repository),
    themes: ThemeManager = Depends(get_theme_manager),
):
    """Render a single post. This is where a saved edit redirects to."""
    post = posts.get_post_by_slug(slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")

    return HTMLResponse(themes.render("post_view.html", post=post))
