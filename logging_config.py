"""Centralized logging configuration."""

import logging
from typing import Iterable, Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    level: Optional[str] = None,
    include_uvicorn: bool = True,
    extra_loggers: Optional[Iterable[str]] = None,
) -> None:
    """Configure root logging once at startup.

    Args:
        level: Log level name. Falls back to ``settings.log_level``.
        include_uvicorn: Whether to align uvicorn loggers with the same level.
        extra_loggers: Additional logger names to align with the level.
    """
    from config import get_settings

    resolved_level = (level or get_settings().log_level or "INFO").upper()
    logging.basicConfig(level=resolved_level, format=DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT)

    names = list(extra_loggers or [])
    if include_uvicorn:
        names.extend(["uvicorn", "uvicorn.error", "uvicorn.access"])
    for name in names:
        logging.getLogger(name).setLevel(resolved_level)
