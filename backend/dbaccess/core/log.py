"""
Logging setup and test-narration helpers.

configure_logging() sets the root level from LOG_LEVEL (or DEBUG=true) and
installs a timestamped format. log_section/log_step print the separators and
STEP lines used to narrate test runs.
"""

import logging

from dbaccess.core.config import settings

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
_SEPARATOR = "=" * 80


def configure_logging(level: str | int | None = None) -> None:
    """Configure the root logger. Safe to call more than once."""
    if level is None:
        level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL.upper()
    logging.basicConfig(format=_FORMAT)
    logging.getLogger().setLevel(level)


def log_section(logger: logging.Logger, title: str) -> None:
    logger.info(_SEPARATOR)
    logger.info("  %s", title)
    logger.info(_SEPARATOR)


def log_step(logger: logging.Logger, message: str) -> None:
    logger.info("STEP: %s", message)
