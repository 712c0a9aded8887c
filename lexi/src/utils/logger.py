"""
Lexi - Logging
===============
Pre-configured logger factory so every module writes the same
``time | level | module | message`` lines.

Logging verbosity is driven by ``settings.ENV``:
  • ``"dev"``  → DEBUG level  (maximum detail)
  • ``"prod"`` → WARNING level (errors & warnings only)

Usage:
    from lexi.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys

from lexi.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Create and return a named logger with the Lexi formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit logging level override.
               If *None*, the level is derived from ``settings.ENV``.

    Returns:
        A configured ``logging.Logger`` instance.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    # Handlers are attached once per logger name
    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(console_handler)

        logger.propagate = False

    return logger
