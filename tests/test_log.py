"""Tests for heartlink.log module."""

import logging

import pytest

from heartlink.log import (
    APP_LOGGER,
    DATE_FORMAT,
    LOG_FORMAT,
    RADIO_LOGGER,
    VALID_LEVELS,
    setup_logging,
)


class TestValidLevels:
    """Tests for VALID_LEVELS constant."""

    def test_exact_set(self):
        """VALID_LEVELS contains exactly the standard levels."""
        assert VALID_LEVELS == {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class TestSetupLogging:
    """Tests for setup_logging function."""

    @pytest.fixture(autouse=True)
    def reset_logging(self):
        """Reset logging after each test."""
        yield
        logging.getLogger().handlers.clear()
        for name in (APP_LOGGER, RADIO_LOGGER):
            logger = logging.getLogger(name)
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)

    def test_default_level_is_info(self):
        """Default log level is INFO."""
        setup_logging()
        assert logging.getLogger(APP_LOGGER).level == logging.INFO

    @pytest.mark.parametrize(
        "name,level",
        [
            ("DEBUG", logging.DEBUG),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
        ],
    )
    def test_named_levels(self, name, level):
        """Each valid level name sets the app logger."""
        setup_logging(name)
        assert logging.getLogger(APP_LOGGER).level == level

    def test_mixed_case_level_accepted(self):
        """Level names are case-insensitive."""
        setup_logging("DeBuG")
        assert logging.getLogger(APP_LOGGER).level == logging.DEBUG

    def test_invalid_level_defaults_to_info(self, capsys):
        """Invalid level defaults to INFO and logs a warning to stderr."""
        setup_logging("BADLEVEL")

        assert logging.getLogger(APP_LOGGER).level == logging.INFO
        captured = capsys.readouterr()
        assert "Unknown log level" in captured.err
        assert "BADLEVEL" in captured.err

    def test_root_logger_at_warning(self):
        """Root logger stays at WARNING."""
        setup_logging("DEBUG")
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger(APP_LOGGER).isEnabledFor(logging.DEBUG)

    def test_radio_logger_untouched_by_default(self):
        """bleak's logger keeps inheriting from root unless asked."""
        setup_logging("DEBUG")
        assert logging.getLogger(RADIO_LOGGER).level == logging.NOTSET
        assert not logging.getLogger(RADIO_LOGGER).isEnabledFor(logging.DEBUG)

    def test_radio_level(self):
        """radio_level sets bleak's logger."""
        setup_logging("INFO", radio_level="DEBUG")
        assert logging.getLogger(RADIO_LOGGER).level == logging.DEBUG

    def test_invalid_radio_level_ignored(self, capsys):
        """An unknown radio level is reported and ignored."""
        setup_logging("INFO", radio_level="LOUD")

        assert logging.getLogger(RADIO_LOGGER).level == logging.NOTSET
        assert "Unknown radio log level" in capsys.readouterr().err


class TestLogFormat:
    """Tests for log format constants."""

    def test_log_format_contains_placeholders(self):
        """LOG_FORMAT contains expected placeholders."""
        for placeholder in ("%(asctime)s", "%(levelname)s", "%(name)s", "%(message)s"):
            assert placeholder in LOG_FORMAT

    def test_date_format(self):
        """DATE_FORMAT is HH:MM:SS."""
        assert DATE_FORMAT == "%H:%M:%S"
