"""Rendering of the exporter state in the Prometheus text exposition format."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .probes.sample import Sample
from .store import Snapshot

# Content type of the rendered document
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class MetricKind(str, Enum):
    """Prometheus metric type."""

    GAUGE = "gauge"
    COUNTER = "counter"


# Value of a metric derived from a snapshot
ValueGetter = Callable[[Snapshot], float]

# Ordered label pairs of an info metric derived from a sample
LabelGetter = Callable[[Sample], list[tuple[str, str]]]


@dataclass(frozen=True)
class MetricSpec:
    """One metric of the catalog.

    Attributes:
        name: Metric name.
        kind: Metric type.
        help: Description for the HELP line.
        value: Function deriving the sample value from a snapshot.
        integer: True to render the value without a decimal point.
        labels: For info metrics, function deriving the label pairs from a sample.
        label_names: For info metrics, label names in output order.
    """

    name: str
    kind: MetricKind
    help: str
    value: ValueGetter
    integer: bool = False
    labels: LabelGetter | None = None
    label_names: tuple[str, ...] = ()

    def render(self, snapshot: Snapshot) -> str:
        """Render the HELP, TYPE and sample lines of this metric."""
        return "\n".join(
            [
                f"# HELP {self.name} {self.help}",
                f"# TYPE {self.name} {self.kind.value}",
                f"{self.name}{self._label_set(snapshot)} {self._format_value(snapshot)}",
            ]
        )

    def _label_set(self, snapshot: Snapshot) -> str:
        if self.labels is None:
            return ""
        # without a sample every label is present but empty
        if snapshot.sample is None:
            pairs = [(name, "") for name in self.label_names]
        else:
            pairs = self.labels(snapshot.sample)
        return "{" + ",".join(f'{k}="{escape_label_value(v)}"' for k, v in pairs) + "}"

    def _format_value(self, snapshot: Snapshot) -> str:
        value = self.value(snapshot)
        if self.integer:
            return str(int(value))
        return f"{float(value):.3f}"


def escape_label_value(value: str) -> str:
    """Escape a label value for the text exposition format."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _sample_value(getter: Callable[[Sample], float]) -> ValueGetter:
    """Derive a value from the snapshot's sample, zero when there is none."""

    def value(snapshot: Snapshot) -> float:
        return 0 if snapshot.sample is None else getter(snapshot.sample)

    return value


def _last_run_timestamp(snapshot: Snapshot) -> float:
    if snapshot.last_attempt_at is None:
        return 0
    return int(snapshot.last_attempt_at.timestamp())


def _packet_loss(sample: Sample) -> float:
    return 0.0 if sample.packet_loss_percent is None else sample.packet_loss_percent


def _server_labels(sample: Sample) -> list[tuple[str, str]]:
    server = sample.server
    return [
        ("id", str(server.id)),
        ("name", server.name),
        ("location", server.location),
        ("country", server.country),
        ("host", server.host),
        ("ip", server.ip),
    ]


def _interface_labels(sample: Sample) -> list[tuple[str, str]]:
    interface = sample.interface
    return [
        ("internal_ip", interface.internal_ip),
        ("name", interface.name),
        ("mac_addr", interface.mac_addr),
        ("is_vpn", "true" if interface.is_vpn else "false"),
        ("external_ip", interface.external_ip),
    ]


def _info(snapshot: Snapshot) -> float:
    return 1


def _latency_metrics(direction: str) -> list[MetricSpec]:
    """Loaded latency gauges of the download or upload transfer."""
    title = direction.capitalize()
    stats = [("iqm", "IQM"), ("low", "low"), ("high", "high"), ("jitter", "jitter")]
    return [
        MetricSpec(
            name=f"speedtest_{direction}_latency_{stat}_ms",
            kind=MetricKind.GAUGE,
            help=f"{title} latency {label} in milliseconds",
            value=_sample_value(
                lambda s, d=direction, f=f"{stat}_ms": getattr(getattr(s, d).latency, f)
            ),
        )
        for stat, label in stats
    ]


# Fixed, ordered metric catalog
METRICS: tuple[MetricSpec, ...] = (
    MetricSpec(
        name="speedtest_ping_latency_ms",
        kind=MetricKind.GAUGE,
        help="Latency in milliseconds",
        value=_sample_value(lambda s: s.ping.latency_ms),
    ),
    MetricSpec(
        name="speedtest_ping_jitter_ms",
        kind=MetricKind.GAUGE,
        help="Jitter in milliseconds",
        value=_sample_value(lambda s: s.ping.jitter_ms),
    ),
    MetricSpec(
        name="speedtest_download_bandwidth_mbps",
        kind=MetricKind.GAUGE,
        help="Download bandwidth in Mbps",
        value=_sample_value(lambda s: s.download.rate),
    ),
    MetricSpec(
        name="speedtest_upload_bandwidth_mbps",
        kind=MetricKind.GAUGE,
        help="Upload bandwidth in Mbps",
        value=_sample_value(lambda s: s.upload.rate),
    ),
    MetricSpec(
        name="speedtest_download_bytes_total",
        kind=MetricKind.COUNTER,
        help="Total bytes downloaded",
        value=_sample_value(lambda s: s.download.bytes_transferred),
        integer=True,
    ),
    MetricSpec(
        name="speedtest_upload_bytes_total",
        kind=MetricKind.COUNTER,
        help="Total bytes uploaded",
        value=_sample_value(lambda s: s.upload.bytes_transferred),
        integer=True,
    ),
    MetricSpec(
        name="speedtest_packet_loss_percent",
        kind=MetricKind.GAUGE,
        help="Packet loss percentage",
        value=_sample_value(_packet_loss),
    ),
    MetricSpec(
        name="speedtest_last_run_timestamp_seconds",
        kind=MetricKind.GAUGE,
        help="Timestamp of the last speedtest run",
        value=_last_run_timestamp,
        integer=True,
    ),
    MetricSpec(
        name="speedtest_run_success",
        kind=MetricKind.GAUGE,
        help="Whether the last speedtest run was successful",
        value=lambda snapshot: 1 if snapshot.last_attempt_ok else 0,
        integer=True,
    ),
    *_latency_metrics("download"),
    *_latency_metrics("upload"),
    MetricSpec(
        name="speedtest_server_id",
        kind=MetricKind.GAUGE,
        help="Server ID",
        value=_sample_value(lambda s: s.server.id),
        integer=True,
    ),
    MetricSpec(
        name="speedtest_server_port",
        kind=MetricKind.GAUGE,
        help="Server port",
        value=_sample_value(lambda s: s.server.port),
        integer=True,
    ),
    MetricSpec(
        name="speedtest_server_info",
        kind=MetricKind.GAUGE,
        help="Metadata about the test server",
        value=_info,
        integer=True,
        labels=_server_labels,
        label_names=("id", "name", "location", "country", "host", "ip"),
    ),
    MetricSpec(
        name="speedtest_isp_info",
        kind=MetricKind.GAUGE,
        help="ISP information",
        value=_info,
        integer=True,
        labels=lambda s: [("isp", s.isp)],
        label_names=("isp",),
    ),
    MetricSpec(
        name="speedtest_interface_info",
        kind=MetricKind.GAUGE,
        help="Network interface information",
        value=_info,
        integer=True,
        labels=_interface_labels,
        label_names=("internal_ip", "name", "mac_addr", "is_vpn", "external_ip"),
    ),
    MetricSpec(
        name="speedtest_interface_is_vpn",
        kind=MetricKind.GAUGE,
        help="Whether the connection is through a VPN",
        value=_sample_value(lambda s: 1 if s.interface.is_vpn else 0),
        integer=True,
    ),
)


def render(snapshot: Snapshot) -> str:
    """Render a snapshot as a metrics document.

    Every metric of the catalog is rendered in catalog order, also when no
    probe has succeeded yet, so the document is always well-formed.

    Args:
        snapshot: Exporter state to render.

    Returns:
        The metrics document, ending with a newline.
    """
    return "\n".join(metric.render(snapshot) for metric in METRICS) + "\n"
