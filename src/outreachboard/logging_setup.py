"""Logging configuration for CLI runs.

The library itself only creates module loggers; handlers are attached here
by the CLI entry point.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    A handler installed by an earlier call is replaced, so repeated runs in
    one process write to the current ``sys.stderr``.

    Args:
        level: Level name (e.g. "DEBUG"). Defaults to config.log_level.

    Returns:
        The configured ``outreachboard`` logger
    """
    from outreachboard.config import config

    logger = logging.getLogger("outreachboard")
    logger.setLevel((level or config.log_level).upper())

    for handler in [h for h in logger.handlers if getattr(h, "_outreachboard", False)]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._outreachboard = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
