"""Validation of submitted post edit forms."""

from typing import Any, Mapping

from .models import PostFormErrors


POST_FIELDS = ("title", "slug", "markdown")

REQUIRED_MESSAGES = {
    "title": "Title is required",
    "slug": "Slug is required",
    "markdown": "Markdown is required",
}


def extract_post_fields(form: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the post fields out of submitted form data.

    Missing fields come back as None. Values are passed through untouched,
    so an uploaded file stays an ``UploadFile`` for the caller to reject.
    """
    return {name: form.get(name) for name in POST_FIELDS}


def validate_post_fields(fields: Mapping[str, Any]) -> PostFormErrors:
    """Check that every post field is present and non-empty.

    Args:
        fields: Mapping with ``title``, ``slug`` and ``markdown``.

    Returns:
        Errors with a message for each empty field and None for the others.
    """
    return PostFormErrors(
        **{
            name: None if fields.get(name) else message
            for name, message in REQUIRED_MESSAGES.items()
        }
    )
