"""postdesk - edit your blog posts from the browser."""

__version__ = "0.1.0"
