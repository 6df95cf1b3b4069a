"""
Cosmo - Logging
================
Pre-configured logger factory shared by every Cosmo module.

Levels follow the environment mode:
  • ``"dev"``  → DEBUG
  • ``"prod"`` → WARNING

Loggers are created at import time, before any ``Settings`` exist, so
the initial level comes from the ``ENV`` variable.  Entry points call
``configure_logging(settings.ENV)`` once settings are loaded; that
re-levels every logger handed out so far and becomes the default for
later ones.

Usage:
    from cosmo.src.utils.logger import configure_logging, get_logger
    logger = get_logger(__name__)
    configure_logging(settings.ENV)
"""

import logging
import os
import sys

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_default_level = _ENV_LEVEL_MAP.get(os.getenv("ENV", "dev"), logging.INFO)
# Loggers whose level follows the environment mode (no explicit override).
_env_leveled: dict[str, logging.Logger] = {}


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the named logger with Cosmo's stdout handler attached.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Fixed level for this logger.  When *None* the level
               tracks the environment mode.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _apply_level(logger, level if level is not None else _default_level)
        if level is None:
            _env_leveled[name] = logger

    return logger


def configure_logging(env: str) -> int:
    """Apply the level for *env* to all environment-leveled loggers.  Returns the level."""
    global _default_level
    _default_level = _ENV_LEVEL_MAP.get(env, logging.INFO)
    for logger in _env_leveled.values():
        _apply_level(logger, _default_level)
    return _default_level


def _apply_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
