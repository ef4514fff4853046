"""Module for the Sample class and decoding of speedtest reports."""

from dataclasses import dataclass, field
from datetime import datetime
import json
import sys
from typing import Any

from ..exceptions import ProbeParseFailed
from ..utils.rates import DataRateMbps, Percentage

# sentinel for leaves that must be present in a report
_REQUIRED = object()


@dataclass(frozen=True)
class PingStats:
    """Idle latency measured before the transfers, in milliseconds."""

    latency_ms: float = 0.0
    jitter_ms: float = 0.0
    low_ms: float = 0.0
    high_ms: float = 0.0


@dataclass(frozen=True)
class LatencyStats:
    """Loaded latency measured during a transfer, in milliseconds.

    Attributes:
        iqm_ms: Interquartile mean of the latency measurements.
        low_ms: Lowest latency measured.
        high_ms: Highest latency measured.
        jitter_ms: Latency jitter.
    """

    iqm_ms: float = 0.0
    low_ms: float = 0.0
    high_ms: float = 0.0
    jitter_ms: float = 0.0


@dataclass(frozen=True)
class Transfer:
    """One direction of a speedtest, either download or upload.

    Attributes:
        bandwidth_bytes_per_sec: Measured bandwidth in bytes per second.
        bytes_transferred: Bytes transferred during the test.
        elapsed_ms: Duration of the transfer in milliseconds.
        latency: Latency measured while the transfer was running.
    """

    bandwidth_bytes_per_sec: int
    bytes_transferred: int
    elapsed_ms: int = 0
    latency: LatencyStats = field(default_factory=LatencyStats)

    @property
    def rate(self) -> DataRateMbps:
        """Bandwidth in megabits per second."""
        return DataRateMbps.from_bytes_per_second(self.bandwidth_bytes_per_sec)


@dataclass(frozen=True)
class NetworkInterface:
    """Local network interface the speedtest ran on."""

    internal_ip: str = ""
    name: str = ""
    mac_addr: str = ""
    is_vpn: bool = False
    external_ip: str = ""


@dataclass(frozen=True)
class ServerInfo:
    """Information about the speedtest server used for a sample."""

    id: int = 0
    host: str = ""
    port: int = 0
    name: str = ""
    location: str = ""
    country: str = ""
    ip: str = ""


@dataclass(frozen=True)
class ResultInfo:
    """Provider-assigned result identity.

    Attributes:
        id: Provider-assigned result ID.
        url: URL to view the result.
        persisted: True if the provider stored the result and the URL is viewable.
    """

    id: str = ""
    url: str = ""
    persisted: bool = False


@dataclass(frozen=True)
class Sample:
    """One successfully decoded speedtest report.

    Samples are immutable; a new probe attempt always produces a new instance.

    Attributes:
        captured_at: Wall-clock instant the sample was captured.
        ping: Idle latency statistics.
        download: Download transfer statistics.
        upload: Upload transfer statistics.
        packet_loss_percent: Packet loss percentage, None when the report omits it.
        isp: Name of the internet service provider.
        interface: Local network interface details.
        server: Speedtest server details.
        result: Provider-assigned result identity.
        report_type: The report's `type` field, carried verbatim.
        reported_at: The report's `timestamp` field, carried verbatim.
    """

    captured_at: datetime
    ping: PingStats
    download: Transfer
    upload: Transfer
    packet_loss_percent: Percentage | None = None
    isp: str = ""
    interface: NetworkInterface = field(default_factory=NetworkInterface)
    server: ServerInfo = field(default_factory=ServerInfo)
    result: ResultInfo = field(default_factory=ResultInfo)
    report_type: str = ""
    reported_at: str = ""

    def __post_init__(self) -> None:
        """Validate the capture time and packet loss type."""
        if not isinstance(self.captured_at, datetime):
            raise ValueError("captured_at must be a datetime instance")
        if self.packet_loss_percent is not None and not isinstance(
            self.packet_loss_percent, Percentage
        ):
            raise ValueError("Packet loss must be a Percentage instance")

    @classmethod
    def from_json(cls, raw: bytes | str, captured_at: datetime) -> "Sample":
        """Decode the JSON output of a speedtest probe.

        Args:
            raw: Standard output of the probe.
            captured_at: Wall-clock instant to record as the capture time.

        Returns:
            The decoded sample.

        Raises:
            ProbeParseFailed: If the output is not valid JSON or does not match the report schema
        """
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            report = json.loads(raw)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError is a ValueError, as are bad UTF-8 and integers over the digit limit
            raise ProbeParseFailed(f"Probe output is not a JSON document: {e}") from e
        return cls.from_report(report, captured_at)

    @classmethod
    def from_report(cls, report: Any, captured_at: datetime) -> "Sample":
        """Build a sample from an already parsed speedtest report.

        Unknown keys are ignored. Leaves other than ping latency and jitter, and
        transfer bandwidth and bytes, default to zero or empty when absent.

        Args:
            report: Parsed JSON report.
            captured_at: Wall-clock instant to record as the capture time.

        Returns:
            The decoded sample.

        Raises:
            ProbeParseFailed: If the report does not match the schema
        """
        if not isinstance(report, dict):
            raise ProbeParseFailed(
                f"Probe report must be a JSON object, not {type(report).__name__}"
            )

        ping = _section(report, "ping", "", required=True)
        packet_loss = _number(report, "packetLoss", "", default=None)
        interface = _section(report, "interface", "")
        server = _section(report, "server", "")
        result = _section(report, "result", "")

        return cls(
            captured_at=captured_at,
            ping=PingStats(
                latency_ms=_number(ping, "latency", "ping"),
                jitter_ms=_number(ping, "jitter", "ping"),
                low_ms=_number(ping, "low", "ping", default=0.0),
                high_ms=_number(ping, "high", "ping", default=0.0),
            ),
            download=_transfer(report, "download"),
            upload=_transfer(report, "upload"),
            packet_loss_percent=None if packet_loss is None else Percentage(packet_loss),
            isp=_string(report, "isp", ""),
            interface=NetworkInterface(
                internal_ip=_string(interface, "internalIp", "interface"),
                name=_string(interface, "name", "interface"),
                mac_addr=_string(interface, "macAddr", "interface"),
                is_vpn=_boolean(interface, "isVpn", "interface"),
                external_ip=_string(interface, "externalIp", "interface"),
            ),
            server=ServerInfo(
                id=_integer(server, "id", "server", default=0),
                host=_string(server, "host", "server"),
                port=_integer(server, "port", "server", default=0),
                name=_string(server, "name", "server"),
                location=_string(server, "location", "server"),
                country=_string(server, "country", "server"),
                ip=_string(server, "ip", "server"),
            ),
            result=ResultInfo(
                id=_string(result, "id", "result"),
                url=_string(result, "url", "result"),
                persisted=_boolean(result, "persisted", "result"),
            ),
            report_type=_string(report, "type", ""),
            reported_at=_string(report, "timestamp", ""),
        )


def _path(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key


def _lookup(data: dict[str, Any], key: str, parent: str, default: Any) -> Any:
    """Get a leaf, raising when a required leaf is absent."""
    value = data.get(key)
    if value is None:
        if default is _REQUIRED:
            raise ProbeParseFailed(f"Probe report is missing '{_path(parent, key)}'")
        return default
    return value


def _section(
    data: dict[str, Any], key: str, parent: str, required: bool = False
) -> dict[str, Any]:
    value = _lookup(data, key, parent, _REQUIRED if required else {})
    if not isinstance(value, dict):
        raise ProbeParseFailed(f"Probe report field '{_path(parent, key)}' must be an object")
    return value


def _numeric(data: dict[str, Any], key: str, parent: str) -> int | float:
    """Get a present leaf that is a non-negative number representable as a float."""
    value = data[key]
    # bool is a subclass of int and is never a valid measurement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProbeParseFailed(f"Probe report field '{_path(parent, key)}' must be a number")
    # ints compare exactly, so huge ints fail here instead of overflowing float()
    if not 0 <= value <= sys.float_info.max:
        raise ProbeParseFailed(
            f"Probe report field '{_path(parent, key)}' must be a non-negative finite number"
        )
    return value


def _number(data: dict[str, Any], key: str, parent: str, default: Any = _REQUIRED) -> Any:
    if data.get(key) is None:
        return _lookup(data, key, parent, default)
    return float(_numeric(data, key, parent))


def _integer(data: dict[str, Any], key: str, parent: str, default: Any = _REQUIRED) -> Any:
    if data.get(key) is None:
        return _lookup(data, key, parent, default)
    value = _numeric(data, key, parent)
    if isinstance(value, int):
        return value
    if not value.is_integer():
        raise ProbeParseFailed(f"Probe report field '{_path(parent, key)}' must be an integer")
    return int(value)


def _string(data: dict[str, Any], key: str, parent: str) -> str:
    value = _lookup(data, key, parent, "")
    if not isinstance(value, str):
        raise ProbeParseFailed(f"Probe report field '{_path(parent, key)}' must be a string")
    return value


def _boolean(data: dict[str, Any], key: str, parent: str) -> bool:
    value = _lookup(data, key, parent, False)
    if not isinstance(value, bool):
        raise ProbeParseFailed(f"Probe report field '{_path(parent, key)}' must be a boolean")
    return value


def _transfer(report: dict[str, Any], key: str) -> Transfer:
    """Decode the download or upload section of a report."""
    data = _section(report, key, "", required=True)
    latency = _section(data, "latency", key)
    path = f"{key}.latency"
    return Transfer(
        bandwidth_bytes_per_sec=_integer(data, "bandwidth", key),
        bytes_transferred=_integer(data, "bytes", key),
        elapsed_ms=_integer(data, "elapsed", key, default=0),
        latency=LatencyStats(
            iqm_ms=_number(latency, "iqm", path, default=0.0),
            low_ms=_number(latency, "low", path, default=0.0),
            high_ms=_number(latency, "high", path, default=0.0),
            jitter_ms=_number(latency, "jitter", path, default=0.0),
        ),
    )
