"""Static probe usually used for testing."""

from collections.abc import Iterable
import copy
import json
import threading
from typing import Any

from packaging.version import Version

from ..core import register_probe
from ..utils.logger import get_logger
from .base import BaseProbe

# Get logger
logger = get_logger(__name__)

# Report returned when no outputs are configured, shaped like Ookla CLI 1.2 output
STATIC_REPORT: dict[str, Any] = {
    "type": "result",
    "timestamp": "2024-05-01T12:00:00Z",
    "ping": {"jitter": 0.512, "latency": 12.5, "low": 11.874, "high": 13.402},
    "download": {
        "bandwidth": 93750000,
        "bytes": 1044651200,
        "elapsed": 11208,
        "latency": {"iqm": 24.16, "low": 12.015, "high": 230.5, "jitter": 6.41},
    },
    "upload": {
        "bandwidth": 12500000,
        "bytes": 116283392,
        "elapsed": 9405,
        "latency": {"iqm": 41.023, "low": 11.9, "high": 388.12, "jitter": 18.5},
    },
    "packetLoss": 0,
    "isp": "Test ISP",
    "interface": {
        "internalIp": "192.168.1.20",
        "name": "eth0",
        "macAddr": "02:42:AC:11:00:02",
        "isVpn": False,
        "externalIp": "203.0.113.7",
    },
    "server": {
        "id": 12345,
        "host": "speedtest.example.com",
        "port": 8080,
        "name": "Test Server",
        "location": "Test Location",
        "country": "Test Country",
        "ip": "198.51.100.10",
    },
    "result": {
        "id": "00000000-0000-0000-0000-000000000000",
        "url": "https://www.speedtest.net/result/c/00000000-0000-0000-0000-000000000000",
        "persisted": True,
    },
}

# One scripted probe output: raw output, a report to serialize, or an exception to raise
StaticOutput = bytes | str | dict[str, Any] | BaseException


class StaticProbe(BaseProbe):
    """Scripted probe usually for testing, does not require the speedtest binary or network.

    Each run replays the next configured output, repeating the last one once the
    script is exhausted. Runs can be stalled with a gate event.
    """

    def __init__(
        self,
        *,
        outputs: Iterable[StaticOutput] | None = None,
        gate: threading.Event | None = None,
        version: str = "1.2.3+c0ffee",
    ) -> None:
        """Initialize a scripted probe.

        Args:
            outputs: Outputs returned by successive runs. Bytes and strings are
                returned verbatim, dictionaries are serialized to JSON, and
                exceptions are raised. Defaults to a single successful report.
            gate: When set, each run waits until the event is set before returning.
            version: Probe version string
        """
        # log warning that is used for testing purposes
        logger.warning("StaticProbe is used for testing purposes, it does not run a speedtest.")

        self._outputs: list[StaticOutput] = list(outputs) if outputs is not None else []
        if not self._outputs:
            self._outputs.append(copy.deepcopy(STATIC_REPORT))
        self._gate = gate
        self.__version = version

        self._lock = threading.Lock()
        self._active = 0
        self.calls = 0
        self.max_active = 0

    @property
    def _version(self) -> Version:
        """Get the probe version.

        Returns:
            Version for this probe
        """
        return Version(self.__version)

    def _next_output(self) -> StaticOutput:
        """Pop the next scripted output, keeping the last one for later runs."""
        with self._lock:
            self.calls += 1
            self._active += 1
            self.max_active = max(self.max_active, self._active)
            if len(self._outputs) > 1:
                return self._outputs.pop(0)
            return self._outputs[0]

    def _execute(self) -> bytes:
        """Return the next scripted output.

        Returns:
            The scripted raw report.
        """
        output = self._next_output()
        try:
            if self._gate is not None:
                self._gate.wait()

            if isinstance(output, BaseException):
                raise output
            if isinstance(output, dict):
                return json.dumps(output).encode("utf-8")
            if isinstance(output, str):
                return output.encode("utf-8")
            return output
        finally:
            with self._lock:
                self._active -= 1


# Register this probe
register_probe("static", StaticProbe)
