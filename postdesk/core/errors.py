"""Exceptions shared by the postdesk routes and services."""


class PostdeskError(Exception):
    """Base exception for postdesk."""

    pass


class InvariantError(PostdeskError):
    """A programming invariant did not hold.

    The message is meant for the logs. Clients only see a generic 500.
    """

    pass


class PostNotFoundError(PostdeskError):
    """The post store has no post under the requested slug."""

    def __init__(self, slug: str):
        super().__init__(f"Post not found: {slug}")
        self.slug = slug


class LoginRequired(PostdeskError):
    """The request has no valid session.

    Args:
        redirect_to: Local path to return to after logging in.
    """

    def __init__(self, redirect_to: str = "/"):
        super().__init__("Authentication required")
        self.redirect_to = redirect_to


def invariant(condition: object, message: str) -> None:
    """Raise :class:`InvariantError` with ``message`` unless ``condition`` is truthy."""
    if not condition:
        raise InvariantError(message)
