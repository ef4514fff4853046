"""Ookla Speedtest CLI probe implementation."""

import re
import subprocess

from packaging.version import InvalidVersion, Version

from ..core import register_probe
from ..exceptions import ProbeExecutionFailed
from ..utils.logger import get_logger
from .base import BaseProbe

# Default location of the Ookla speedtest binary in the exporter image
DEFAULT_PROBE_PATH = "/usr/local/bin/speedtest"

# Default seconds to wait for one speedtest before killing it
DEFAULT_PROBE_TIMEOUT = 300.0

# Seconds to wait for `speedtest --version`
VERSION_TIMEOUT = 10.0

# Fixed arguments accepting the license prompts and requesting a JSON report
PROBE_ARGS = ("--accept-license", "--accept-gdpr", "--format=json")

# Get logger
logger = get_logger(__name__)


class OoklaProbe(BaseProbe):
    """Probe for Ookla Speedtest.net, runs the official Ookla Speedtest CLI tool."""

    def __init__(
        self,
        *,
        probe_path: str = DEFAULT_PROBE_PATH,
        probe_timeout: float | None = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        """Initialize the Ookla probe.

        Args:
            probe_path: Path to the speedtest binary.
            probe_timeout: Seconds to wait for one speedtest before killing it.
                None or 0 waits indefinitely.
        """
        self._PROBE_PATH = str(probe_path)
        self._PROBE_TIMEOUT = probe_timeout or None
        self._VERSION: Version | None = None

    @property
    def probe_path(self) -> str:
        """Path to the speedtest binary."""
        return self._PROBE_PATH

    @property
    def command(self) -> list[str]:
        """Argument vector used to run one speedtest."""
        return [self._PROBE_PATH, *PROBE_ARGS]

    @property
    def _version(self) -> Version:
        """Get the version of the speedtest binary, determined on first use.

        Returns:
            Version for this probe

        Raises:
            InvalidVersion: If the binary cannot be run or its output is not recognized
        """
        if self._VERSION is None:
            self._VERSION = self._parse_version()
        return self._VERSION

    def _parse_version(self) -> Version:
        """Get the version of the speedtest CLI as a Version object."""
        try:
            result = self._run_speedtest([self._PROBE_PATH, "--version"], VERSION_TIMEOUT)
        except (OSError, subprocess.SubprocessError) as e:
            # If the command fails, we can't determine the version
            raise InvalidVersion(f"Speedtest cli failure: {e}") from e
        output = result.stdout.decode("utf-8", errors="replace")

        # Parse version from output, e.g.
        # Speedtest by Ookla 1.2.0.84 (ea6b6773cf) Linux/x86_64-linux-musl 5.15.167.4-microsoft-standard-WSL2 x86_64    # noqa: E501
        match = re.match(r"^\s*[^0-9]+ ([0-9.]+)[^\da-fA-F]+([\da-fA-F]+)", output)
        if match:
            return Version(f"{match.group(1)}+{match.group(2)}")
        raise InvalidVersion(f"Unrecognized speedtest cli output: {output}")

    def _run_speedtest(
        self, cmd: list[str], timeout: float | None
    ) -> subprocess.CompletedProcess[bytes]:
        """Run the speedtest binary, capturing stdout and stderr separately.

        Args:
            cmd: Complete argument vector.
            timeout: Seconds to wait before killing the binary, None waits indefinitely.

        Returns:
            The completed process.

        Raises:
            OSError: If the binary cannot be launched
            subprocess.TimeoutExpired: If the binary does not exit within the timeout
        """
        return subprocess.run(cmd, capture_output=True, timeout=timeout)

    def _execute(self) -> bytes:
        """Run one speedtest.

        Returns:
            The JSON report written to standard output.

        Raises:
            ProbeExecutionFailed: If the binary cannot run, times out, or exits non-zero
        """
        cmd = self.command
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            result = self._run_speedtest(cmd, self._PROBE_TIMEOUT)
        except subprocess.TimeoutExpired as e:
            # subprocess.run kills the child and closes its pipes before raising
            raise ProbeExecutionFailed(
                f"Speedtest did not finish within {self._PROBE_TIMEOUT:g} seconds"
            ) from e
        except OSError as e:
            raise ProbeExecutionFailed(f"Speedtest could not be run: {e}") from e

        # Check for errors
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ProbeExecutionFailed(
                f"Speedtest failed with exit code {result.returncode}: {stderr}"
            )
        return result.stdout


# Register this probe
register_probe("ookla", OoklaProbe)
register_probe("speedtest", OoklaProbe)  # Alias
