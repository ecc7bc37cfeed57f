"""Logging for postdesk.

Everything logs below the ``postdesk`` logger, which :func:`setup_logging`
wires to stdout (and optionally a file) once at startup.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("postdesk")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """(Re)configure the ``postdesk`` logger.

    Calling it again replaces the handlers rather than adding more, so app
    factories and reloads can call it freely. Unknown level names fall back
    to INFO.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = logging.Formatter(log_format)
    for handler in handlers:
        handler.setFormatter(formatter)

    for old in logger.handlers:
        old.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the ``postdesk`` logger, e.g. ``get_logger("posts")``."""
    return logger.getChild(name)


auth_logger = get_logger("auth")
storage_logger = get_logger("storage")
admin_logger = get_logger("admin")
