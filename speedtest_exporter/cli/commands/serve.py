"""Serve command for the speedtest exporter CLI."""

import signal
from types import FrameType
from typing import Annotated

from click import Choice
from packaging.version import InvalidVersion
import typer
from typer import Typer

from ...config import CRON_ENV, DEFAULT_HOST, DEFAULT_PORT, ExporterConfig
from ...core import SpeedtestExporter
from ...probes.base import BaseProbe
from ...utils.logger import get_logger
from ..main import AVAILABLE_PROBES

# Get logger for serve command
logger = get_logger(__name__)


def register_serve_commands(app: Typer) -> None:
    """Register the serve command with the main app."""
    app.command(name="serve")(serve)


def _log_probe_version(name: str, probe: BaseProbe) -> None:
    """Log the probe summary and version, warning when the version cannot be determined."""
    logger.info(f"Probe '{name}': {probe.description[0]}")
    try:
        logger.info(f"Using probe '{name}' version {probe.version}")
    except (InvalidVersion, NotImplementedError) as e:
        logger.warning(f"Cannot determine version of probe '{name}': {e}")


def _exit_on_sigterm(signum: int, frame: FrameType | None) -> None:
    """Unwind the serving loop so the exporter is closed cleanly."""
    logger.info(f"Received signal {signum}, shutting down")
    raise SystemExit(0)


def serve(
    cron: Annotated[
        str | None,
        typer.Option(
            "--cron",
            envvar=CRON_ENV,
            show_default=False,
            help="Cron expression scheduling the speedtests, e.g. '*/30 * * * *'",
        ),
    ] = None,
    port: Annotated[
        int,
        typer.Option("--port", help="TCP port of the metrics listener"),
    ] = DEFAULT_PORT,
    host: Annotated[
        str,
        typer.Option("--host", help="Address of the metrics listener, empty for all interfaces"),
    ] = DEFAULT_HOST,
    probe: Annotated[
        str,
        typer.Option(
            "--probe",
            help="Probe running the speedtests",
            case_sensitive=False,
            click_type=Choice(AVAILABLE_PROBES),
        ),
    ] = "ookla",
    probe_path: Annotated[
        str | None,
        typer.Option("--probe-path", show_default=False, help="Path to the speedtest binary"),
    ] = None,
    probe_timeout: Annotated[
        float | None,
        typer.Option(
            "--probe-timeout",
            show_default=False,
            help="Seconds to wait for one speedtest, 0 waits indefinitely",
        ),
    ] = None,
) -> None:
    """Run a speedtest now and on schedule, serving the latest result at /metrics."""
    config = ExporterConfig.from_env(
        cron=cron,
        port=port,
        host=host,
        probe_path=probe_path,
        probe_timeout=probe_timeout,
    )
    logger.debug(f"Configuration: {config}")

    exporter = SpeedtestExporter(config, probe=probe)
    _log_probe_version(probe, exporter.probe)

    previous_handler = signal.signal(signal.SIGTERM, _exit_on_sigterm)
    try:
        exporter.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        exporter.close()
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)
