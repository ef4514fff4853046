"""Logging configuration for the speedtest exporter."""

import logging
import os
import sys
import time

# Constants
ROOT_LOGGER_NAME = "speedtest_exporter"
LOG_LEVEL_ENV = "SPEEDTEST_EXPORTER_LOG_LEVEL"
_DEFAULT_LOG_LEVEL = logging.INFO

# Create root logger
_root_logger = logging.getLogger(ROOT_LOGGER_NAME)


def create_handler() -> logging.Handler:
    """Create the stderr handler with UTC timestamps used by all exporter loggers."""
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03dZ [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    # Convert timestamps to UTC
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)
    return handler


def level_from_env() -> int | None:
    """Get the numeric log level named by the environment.

    Returns:
        Numeric log level, or None if the variable is unset or names no level.
    """
    env_level_name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not env_level_name:
        return None
    numeric_level = logging.getLevelName(env_level_name)
    return numeric_level if isinstance(numeric_level, int) else None


def setup_logging(
    level: int | None = None,
    force: bool = False,
) -> None:
    """Configure the root logger for the exporter.

    The log level is set through a cascade of options:
    1. `level` parameter (if provided).
    2. `SPEEDTEST_EXPORTER_LOG_LEVEL` environment variable (if set).
    3. Default INFO level.

    Args:
        level: Numeric log level override (logging.DEBUG, logging.INFO, etc.)
        force: Force reconfiguration even if already configured
    """
    # Skip if already configured unless forced
    if not force and _root_logger.handlers:
        return

    # Set level based on parameter, environment, or default
    numeric_level = level
    invalid_env = False
    if numeric_level is None:
        numeric_level = level_from_env()
        if numeric_level is None:
            invalid_env = bool(os.environ.get(LOG_LEVEL_ENV, "").strip())
            numeric_level = _DEFAULT_LOG_LEVEL

    # Set level on root logger
    _root_logger.setLevel(numeric_level)

    # Clear existing handlers if forcing
    if force:
        for handler in _root_logger.handlers[:]:
            _root_logger.removeHandler(handler)

    # Add console handler if needed
    if not _root_logger.handlers:
        _root_logger.addHandler(create_handler())

    if invalid_env:
        _root_logger.warning(
            f"Invalid environment log level '{os.environ.get(LOG_LEVEL_ENV)}', using default"
        )


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component.

    Args:
        name: Hierarchical name for the logger. Idiomatic is to pass `__name__`.

    Returns:
        Configured logger instance
    """
    setup_logging()
    return logging.getLogger(name)
