"""Speedtest Exporter - Prometheus metrics for periodic WAN speedtests.

This package runs a speedtest probe on a cron schedule and serves the most
recent result as a Prometheus text exposition document over HTTP.
"""

from .config import ExporterConfig
from .core import (
    ProbeDriver,
    SpeedtestExporter,
    create_probe,
    get_probe,
    list_probes,
    register_probe,
)
from .exceptions import (
    ConfigMissing,
    ListenerBindFailed,
    ProbeError,
    ProbeExecutionFailed,
    ProbeParseFailed,
    SpeedtestExporterError,
)
from .exposition import render
from .probes.base import BaseProbe
from .probes.sample import Sample
from .store import SampleStore, Snapshot

# Dynamic version import
__version__: str
try:
    from importlib.metadata import PackageNotFoundError, version as _version

    __version__ = _version("speedtest-exporter")
except (ImportError, PackageNotFoundError):
    # Fallback for development environments where the package itself is not installed
    __version__ = "0.1.0.dev0"


# Dynamically import all probe modules which leads to them being registered
def _import_probes() -> None:
    """Import all probe modules from the probes directory."""
    import importlib
    import pathlib
    import pkgutil

    # Get the path to the probes directory
    probes_dir = pathlib.Path(__file__).parent / "probes"

    # Import all Python files in this directory
    for module_info in pkgutil.iter_modules([str(probes_dir)]):
        # Skip modules that do not define probes
        if module_info.name not in ["__init__", "base", "sample"]:
            importlib.import_module(f".{module_info.name}", package="speedtest_exporter.probes")


# Run dynamic imports
_import_probes()

# Clean namespace
del _import_probes

# module names that are exposed to wildcard imports `from speedtest_exporter import *`
__all__ = [
    "__version__",
    "BaseProbe",
    "ConfigMissing",
    "ExporterConfig",
    "ListenerBindFailed",
    "ProbeDriver",
    "ProbeError",
    "ProbeExecutionFailed",
    "ProbeParseFailed",
    "Sample",
    "SampleStore",
    "Snapshot",
    "SpeedtestExporter",
    "SpeedtestExporterError",
    "create_probe",
    "get_probe",
    "list_probes",
    "register_probe",
    "render",
]
