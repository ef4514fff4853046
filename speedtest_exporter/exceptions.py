"""Exceptions for the speedtest exporter package."""


class SpeedtestExporterError(Exception):
    """Base class for all exporter errors."""

    pass


class ConfigMissing(SpeedtestExporterError):
    """Exception raised when the schedule configuration is unset or malformed."""

    pass


class ListenerBindFailed(SpeedtestExporterError):
    """Exception raised when the HTTP listener cannot bind to its address."""

    pass


class ProbeError(SpeedtestExporterError):
    """Exception raised when a probe attempt does not produce a sample."""

    pass


class ProbeExecutionFailed(ProbeError):
    """Exception raised when the probe could not run, timed out, or exited non-zero."""

    pass


class ProbeParseFailed(ProbeError):
    """Exception raised when the probe output is not a decodable report."""

    pass
