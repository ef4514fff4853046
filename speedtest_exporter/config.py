"""Configuration of the speedtest exporter."""

from collections.abc import Mapping
from dataclasses import dataclass
import os
from typing import Any

from croniter import croniter

from .exceptions import ConfigMissing

# Environment variable holding the probe schedule
CRON_ENV = "SPEEDTEST_CRON"

# Fixed listener port scraped by Prometheus
DEFAULT_PORT = 8080

# Empty host binds all interfaces
DEFAULT_HOST = ""


def validate_cron(expression: str | None) -> str:
    """Validate a calendar-style schedule expression.

    Accepts five-field expressions (minute hour day-of-month month day-of-week)
    and `@` descriptors such as `@hourly`.

    Args:
        expression: Schedule expression to validate.

    Returns:
        The expression stripped of surrounding whitespace.

    Raises:
        ConfigMissing: If the expression is unset, empty, or malformed
    """
    if expression is None or not expression.strip():
        raise ConfigMissing(
            f"{CRON_ENV} is not set. Set it to a cron expression, e.g. {CRON_ENV}='0 * * * *'"
        )

    expression = expression.strip()
    fields = expression.split()
    if not (expression.startswith("@") or len(fields) == 5) or not croniter.is_valid(expression):
        raise ConfigMissing(
            f"{CRON_ENV} '{expression}' is not a valid cron expression. Use five fields "
            "'minute hour day-of-month month day-of-week', e.g. '*/30 * * * *', or a "
            "descriptor such as '@hourly'"
        )
    return expression


@dataclass(frozen=True)
class ExporterConfig:
    """Settings of one exporter process.

    Attributes:
        cron: Schedule expression for probe runs.
        port: TCP port of the metrics listener.
        host: Address of the metrics listener, empty for all interfaces.
        probe_path: Path to the speedtest binary, None for the probe default.
        probe_timeout: Seconds to wait for one speedtest, None for the probe default.
    """

    cron: str
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    probe_path: str | None = None
    probe_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate the schedule and listener settings."""
        # frozen dataclass, so bypass __setattr__ to store the normalized expression
        object.__setattr__(self, "cron", validate_cron(self.cron))
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port must be between 0 and 65535, not {self.port}")
        if self.probe_timeout is not None and self.probe_timeout < 0:
            raise ValueError(f"Probe timeout cannot be negative, not {self.probe_timeout}")

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "ExporterConfig":
        """Load the configuration from the environment.

        Args:
            environ: Environment to read, defaults to os.environ.
            overrides: Settings taking precedence over the environment. None values are ignored.

        Returns:
            The validated configuration.

        Raises:
            ConfigMissing: If no valid schedule is configured
        """
        if environ is None:
            environ = os.environ

        settings: dict[str, Any] = {"cron": environ.get(CRON_ENV)}
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)

    def probe_kwargs(self) -> dict[str, Any]:
        """Probe constructor arguments set by this configuration."""
        kwargs: dict[str, Any] = {}
        if self.probe_path is not None:
            kwargs["probe_path"] = self.probe_path
        if self.probe_timeout is not None:
            kwargs["probe_timeout"] = self.probe_timeout
        return kwargs
