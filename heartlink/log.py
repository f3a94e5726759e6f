"""Logging configuration."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

APP_LOGGER = "heartlink"
RADIO_LOGGER = "bleak"


def _resolve_level(level: str) -> int | None:
    """Return the numeric level for a level name, or None if unknown."""
    name = level.upper()
    if name not in VALID_LEVELS:
        return None
    return getattr(logging, name)


def setup_logging(level: str = "INFO", radio_level: str | None = None) -> None:
    """Configure logging for the application.

    The root logger stays at WARNING on stderr so only heartlink (and, when
    asked for, bleak) log below that.

    Args:
        level: heartlink log level (DEBUG, INFO, WARNING, ERROR)
        radio_level: Optional level for bleak's own logger
    """
    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    app_logger = logging.getLogger(APP_LOGGER)
    numeric_level = _resolve_level(level)
    if numeric_level is None:
        app_logger.setLevel(logging.INFO)
        app_logger.warning("Unknown log level '%s', defaulting to INFO", level)
    else:
        app_logger.setLevel(numeric_level)

    if radio_level is not None:
        radio_numeric = _resolve_level(radio_level)
        if radio_numeric is None:
            app_logger.warning("Unknown radio log level '%s', ignoring", radio_level)
        else:
            logging.getLogger(RADIO_LOGGER).setLevel(radio_numeric)
