"""
Logging setup for the finance back-office.

Every module logs under the ``finance_admin`` logger tree.
"""
import logging
import sys

from settings import settings

LOGGER_NAME = "finance_admin"

logger = logging.getLogger(LOGGER_NAME)


def configure_logging(level: str | None = None) -> logging.Logger:
    """Install a single console handler on the ``finance_admin`` logger."""
    level_name = (level or settings.LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Re-running (e.g. app reload) must not stack handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
