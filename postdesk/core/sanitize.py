"""Markdown rendering and HTML cleaning for post bodies, plus slug helpers."""

import re
import unicodedata

import bleach
from markdown_it import MarkdownIt

from .models import SLUG_PATTERN


class Sanitizer:
    """Turns untrusted markdown into HTML that is safe to embed.

    Markdown is rendered with raw HTML switched off, and the result is then
    run through a bleach allowlist so links can only use safe protocols.
    """

    ALLOWED_TAGS = frozenset(
        "p br hr strong b em i s a blockquote code pre img "
        "ul ol li h1 h2 h3 h4 h5 h6 table thead tbody tr th td".split()
    )

    ALLOWED_ATTRIBUTES = {
        "a": ["href", "title", "rel"],
        "img": ["src", "alt", "title"],
        "ol": ["start"],
        "code": ["class"],
    }

    ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

    def __init__(self):
        self.md = MarkdownIt("commonmark", {"html": False}).enable(["table", "strikethrough"])

    def sanitize_html(self, content: str) -> str:
        """Strip everything outside the allowlists."""
        if not content:
            return ""
        cleaned = bleach.clean(
            content,
            tags=self.ALLOWED_TAGS,
            attributes=self.ALLOWED_ATTRIBUTES,
            protocols=self.ALLOWED_PROTOCOLS,
            strip=True,
        )
        return cleaned.strip()

    def render_markdown(self, content: str) -> str:
        """Markdown to sanitized HTML; empty input gives an empty string."""
        if not content:
            return ""
        return self.sanitize_html(self.md.render(content))

    def validate_slug(self, slug: str) -> bool:
        return bool(slug) and SLUG_PATTERN.fullmatch(slug) is not None

    def slugify(self, text: str) -> str:
        """Lowercase ASCII words joined by hyphens, or ``untitled``.

        Accents are folded (``Café`` gives ``cafe``) and anything else
        outside ``[a-z0-9]`` separates or disappears.
        """
        ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
        words = re.sub(r"[^a-z0-9\s_-]", "", ascii_text.lower())
        slug = re.sub(r"[\s_-]+", "-", words).strip("-")
        return slug or "untitled"
