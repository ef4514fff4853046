"""CLI command registry."""

import typer

from .probe import register_probe_commands
from .serve import register_serve_commands


def register_commands(app: typer.Typer) -> None:
    """Register all CLI commands with the main app."""
    register_serve_commands(app)
    register_probe_commands(app)


__all__ = ["register_commands"]
