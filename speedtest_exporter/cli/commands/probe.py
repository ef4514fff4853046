"""Probe command for the speedtest exporter CLI."""

from typing import Annotated, Any

from click import Choice
import typer
from typer import Typer

from ...core import ProbeDriver, create_probe
from ...exceptions import ProbeError
from ...exposition import render
from ...store import SampleStore
from ...utils.logger import get_logger
from ..main import AVAILABLE_PROBES

# Get logger for probe command
logger = get_logger(__name__)


def register_probe_commands(app: Typer) -> None:
    """Register the probe command with the main app."""
    app.command(name="probe")(probe)


def probe(
    name: Annotated[
        str,
        typer.Option(
            "--probe",
            help="Probe running the speedtest",
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
            help="Seconds to wait for the speedtest, 0 waits indefinitely",
        ),
    ] = None,
) -> None:
    """Run one speedtest and print the metrics document to stdout."""
    kwargs: dict[str, Any] = {"probe_path": probe_path, "probe_timeout": probe_timeout}
    store = SampleStore()
    driver = ProbeDriver(
        create_probe(name, **{k: v for k, v in kwargs.items() if v is not None}), store
    )

    # Perform the speedtest, the document is printed also when it failed
    try:
        driver.run()
        succeeded = True
    except ProbeError:
        succeeded = False

    typer.echo(render(store.snapshot()), nl=False)
    if not succeeded:
        raise typer.Exit(code=1)
