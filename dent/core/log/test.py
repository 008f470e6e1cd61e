"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import get_logger, parse_level, setup_logging


@pytest.mark.unit
class TestLogging:
    """Test core logging API."""

    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        logger = get_logger()
        assert logger.name == "dent"

    def test_setup_logging_sets_root_level(self) -> None:
        """Root level follows the requested level even if already configured."""
        root = logging.getLogger()
        previous = root.level
        try:
            setup_logging(level=logging.DEBUG, stream=StringIO())
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)


@pytest.mark.unit
class TestParseLevel:
    """Test level name parsing."""

    def test_names_are_case_insensitive(self) -> None:
        assert parse_level("debug") == logging.DEBUG
        assert parse_level(" Warning ") == logging.WARNING

    def test_numeric_passthrough(self) -> None:
        assert parse_level(15) == 15

    def test_unknown_name_falls_back(self) -> None:
        assert parse_level("chatty") == logging.INFO
        assert parse_level(None, default=logging.ERROR) == logging.ERROR
