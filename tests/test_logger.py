"""Tests for logger module."""

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from serversense.util.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    ColorFormatter,
    PromptToolkitHandler,
    get_log_filepath,
    get_logger,
    should_use_color,
)


class TestShouldUseColor:
    """Tests for should_use_color function."""

    @patch("sys.stderr.isatty")
    def test_should_use_color_tty(self, mock_isatty):
        mock_isatty.return_value = True
        assert should_use_color() is True

    @patch("sys.stderr.isatty")
    def test_should_use_color_exception(self, mock_isatty):
        mock_isatty.side_effect = Exception("Error")
        assert should_use_color() is False


def test_color_formatter_wraps_known_levels():
    formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    record = logging.LogRecord("test", logging.ERROR, "test.py", 10, "boom", None, None)

    output = formatter.format(record)

    assert output.startswith("\033[31m")
    assert output.endswith("\033[0m")
    assert "boom" in output


def test_get_logger_configures_handlers_once():
    logger = get_logger("serversense_test_logger")
    again = get_logger("serversense_test_logger")

    assert logger is again
    assert logger.propagate is False
    assert len(logger.handlers) == 2
    assert any(isinstance(h, PromptToolkitHandler) for h in logger.handlers)
    assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)


def test_log_filepath_is_stable_for_session():
    assert get_log_filepath() == get_log_filepath()


def test_noisy_library_loggers_are_quieted():
    assert logging.getLogger("discord").level == logging.ERROR
    assert logging.getLogger("openai").level == logging.ERROR
