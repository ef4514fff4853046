"""Command line interface for the speedtest exporter."""

import logging
from typing import Annotated

from click import Choice
import typer

from .. import __version__ as version_string, list_probes
from ..exceptions import SpeedtestExporterError
from .utils.logger import setup_cli_logging

# Names accepted by --probe
AVAILABLE_PROBES = list_probes()

# Names accepted by --log-level, most verbose first
LOG_LEVEL_NAMES = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

logger = logging.getLogger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    pretty_exceptions_show_locals=False,
)


def entrypoint() -> None:
    """Run the CLI, turning uncaught errors into a critical log line and exit code 1.

    Exporter errors such as a missing schedule are expected operational failures
    and are logged without a traceback. Anything else is a bug, so its traceback
    is logged too. At DEBUG level the exception propagates unchanged.
    SystemExit is not an Exception, so exit codes set by commands pass through.
    """
    try:
        app()
    except SpeedtestExporterError as ex:
        logger.critical(str(ex))
        if logger.getEffectiveLevel() <= logging.DEBUG:
            raise
        raise SystemExit(1) from ex
    except Exception as ex:
        logger.critical(f"Unexpected {type(ex).__name__}: {ex}", exc_info=True)
        if logger.getEffectiveLevel() <= logging.DEBUG:
            raise
        raise SystemExit(1) from ex


def _cli_log_level(quiet: bool, verbose: int, log_level: str | None) -> int | None:
    """Pick the log level from the global options, None to use the environment."""
    if log_level:
        return logging.getLevelName(log_level.upper())
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    return None


@app.callback(invoke_without_command=True)
def global_options(
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Only log warnings and errors to stderr",
            rich_help_panel="Global Options",
        ),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            show_default=False,
            metavar="",
            help="Log debug details to stderr, e.g. each scrape and the next scheduled run",
            rich_help_panel="Global Options",
        ),
    ] = 0,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            show_default=False,
            click_type=Choice(LOG_LEVEL_NAMES, case_sensitive=False),
            help="Log level, overrides --quiet, --verbose, and SPEEDTEST_EXPORTER_LOG_LEVEL",
            rich_help_panel="Global Options",
        ),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit",
            rich_help_panel="Global Options",
        ),
    ] = False,
) -> None:
    """Speedtest Exporter - Prometheus metrics for periodic WAN speedtests.

    Log level precedence is --log-level, then --quiet or --verbose, then the
    SPEEDTEST_EXPORTER_LOG_LEVEL environment variable, then INFO.
    """
    setup_cli_logging(log_level=_cli_log_level(quiet, verbose, log_level))

    if version:
        typer.echo(f"Speedtest Exporter {version_string}")
        raise typer.Exit()
