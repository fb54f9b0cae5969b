"""Logging configuration for the API."""
import logging
import sys

from settings import Settings

LOGGERS = ["main", "database", "auth", "errors", "orders", "payments", "reviews", "catalog", "cart", "users"]


def setup_logging(settings: Settings) -> None:
    """
    Configure the application loggers.

    A single stderr handler is shared by every logger in LOGGERS so that
    request handling and store access log in the same format.
    """
    handler = logging.StreamHandler(sys.stderr)

    if settings.log_format == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"module": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)

    for name in LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(settings.log_level.upper())
        for old_handler in logger.handlers[:]:
            old_handler.close()
            logger.removeHandler(old_handler)
        logger.addHandler(handler)
        logger.propagate = False
