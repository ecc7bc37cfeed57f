"""Post data access on top of the JSON storage."""

from datetime import datetime, timezone

from .errors import PostNotFoundError
from .logging import get_logger
from .models import Post
from .sanitize import Sanitizer
from .storage import Storage


logger = get_logger("posts")

COLLECTION = "posts"


class PostRepository:
    """Reads and writes posts stored under the ``posts`` key.

    Posts are keyed by slug; ownership is the ``owner`` field.
    """

    def __init__(self, storage: Storage, sanitizer: Sanitizer | None = None):
        self.storage = storage
        self.sanitizer = sanitizer or Sanitizer()

    def _load(self, slug: str) -> Post | None:
        data = self.storage.get_item(COLLECTION, slug)
        if data is None:
            return None
        return Post.model_validate(data)

    def get_post(self, *, user_id: str, slug: str) -> Post | None:
        """Get a post by slug, only if ``user_id`` owns it.

        Args:
            user_id: Owner to scope the lookup to.
            slug: Post slug.

        Returns:
            The post, or None if it does not exist or belongs to someone else.
        """
        post = self._load(slug)
        if post is None or post.owner != user_id:
            return None
        return post

    def get_post_by_slug(self, slug: str) -> Post | None:
        """Get a post by slug regardless of owner."""
        return self._load(slug)

    def list_posts(self, user_id: str | None = None) -> list[Post]:
        """List posts newest first.

        Args:
            user_id: If given, only posts owned by this user.
        """
        posts = [Post.model_validate(p) for p in self.storage.collection(COLLECTION).values()]
        if user_id is not None:
            posts = [p for p in posts if p.owner == user_id]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    def update_post(
        self,
        *,
        slug: str,
        title: str,
        markdown: str,
        modified_by: str | None = None,
    ) -> None:
        """Overwrite title and markdown of the post stored under ``slug``.

        Raises:
            PostNotFoundError: If no post is stored under ``slug``.
        """
        post = self._load(slug)
        if post is None:
            raise PostNotFoundError(slug)

        post.title = title
        post.markdown = markdown
        post.modified_at = datetime.now(timezone.utc)
        if modified_by is not None:
            post.modified_by = modified_by

        self.storage.set_item(COLLECTION, slug, post.model_dump(mode="json"))
        logger.info(f"Updated post {slug!r}")

    def create_post(
        self,
        *,
        owner: str,
        title: str,
        markdown: str = "",
        slug: str | None = None,
    ) -> Post:
        """Create a post.

        Without an explicit slug one is derived from the title; a taken
        derived slug gets a ``-1``, ``-2``... suffix.

        Raises:
            ValueError: If an explicit slug is malformed or already taken.
        """
        if slug is None:
            base = self.sanitizer.slugify(title)
            slug = base
            counter = 1
            while self.storage.get_item(COLLECTION, slug) is not None:
                slug = f"{base}-{counter}"
                counter += 1
        else:
            if not self.sanitizer.validate_slug(slug):
                raise ValueError("Slug must be lowercase alphanumeric with hyphens")
            if self.storage.get_item(COLLECTION, slug) is not None:
                raise ValueError(f"Slug already exists: {slug}")

        post = Post(slug=slug, title=title, markdown=markdown, owner=owner, modified_by=owner)
        self.storage.set_item(COLLECTION, slug, post.model_dump(mode="json"))
        logger.info(f"Created post {slug!r} for {owner}")
        return post
