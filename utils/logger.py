"""Logging setup for the HeysMe backend."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers that drown out request logs at DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "urllib3")


def setup_logger(log_level: Optional[str] = None, name: str = "heysme") -> logging.Logger:
    """
    Set up and configure a named application logger.

    Modules call this as ``setup_logger(name=__name__)``. The root handler is
    (re)configured each time so the last requested level wins.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Defaults to LOG_LEVEL from the environment, else INFO.
        name: Logger name (default: heysme)

    Returns:
        logging.Logger: Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL") or "INFO"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    return logger
