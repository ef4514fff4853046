"""Logging configuration for the speedtest exporter CLI."""

import logging
import os
import sys

from ...utils.logger import LOG_LEVEL_ENV, ROOT_LOGGER_NAME, create_handler, level_from_env


def setup_cli_logging(
    log_level: int | None = None,
) -> None:
    """Configure the root logger for the speedtest exporter CLI.

    The log level is set through a cascade of options:
    1. `log_level` parameter (if provided).
    2. `SPEEDTEST_EXPORTER_LOG_LEVEL` environment variable (if set).
    3. `logging.INFO` default.

    Args:
        log_level: Numeric log level override (logging.DEBUG, logging.INFO, etc.)
    """
    # get root logger
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)

    # remove existing handlers and add the new one
    root_logger.handlers.clear()
    root_logger.addHandler(create_handler())

    # Set root log level based on parameter, env var, or default
    if log_level is None:
        log_level = level_from_env()
        if log_level is None and os.environ.get(LOG_LEVEL_ENV, "").strip():
            root_logger.error(
                f"Invalid {LOG_LEVEL_ENV} '{os.environ[LOG_LEVEL_ENV]}', using INFO."
            )

    # Set level on root logger, defaulting to INFO if not specified
    log_level = log_level or logging.INFO
    root_logger.setLevel(log_level)

    # Limit traceback display to show only on debug and more verbose levels
    if log_level > logging.DEBUG:
        os.environ["_TYPER_STANDARD_TRACEBACK"] = "1"
        sys.tracebacklimit = 0
