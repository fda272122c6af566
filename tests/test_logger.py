"""Tests for logger setup."""

import logging
from utils.logger import setup_logger


def test_setup_logger_default(monkeypatch):
    """Test logger setup with default settings."""
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    logger = setup_logger()
    assert logger.name == "heysme"
    assert logger.level == logging.INFO


def test_setup_logger_custom_level():
    """Test logger setup with custom log level."""
    logger = setup_logger(log_level="DEBUG")
    assert logger.level == logging.DEBUG


def test_setup_logger_level_from_env(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    logger = setup_logger(name="env_logger")
    assert logger.level == logging.WARNING


def test_setup_logger_custom_name():
    """Test logger setup with custom name."""
    logger = setup_logger(name="test_logger")
    assert logger.name == "test_logger"


def test_noisy_loggers_quieted():
    setup_logger(log_level="DEBUG")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_logger_level_case_insensitive():
    """Test that log level string is case insensitive."""
    logger = setup_logger(log_level="debug")
    assert logger.level == logging.DEBUG

    logger = setup_logger(log_level="INFO")
    assert logger.level == logging.INFO
