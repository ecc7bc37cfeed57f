"""Core modules for postdesk."""

from .storage import Storage
from .config import AppConfig
from .auth import AuthManager
from .csrf import CSRFProtection
from .sanitize import Sanitizer
from .posts import PostRepository
from .audit_log import AuditLogger

__all__ = [
    "Storage",
    "AppConfig",
    "AuthManager",
    "CSRFProtection",
    "Sanitizer",
    "PostRepository",
    "AuditLogger",
]
