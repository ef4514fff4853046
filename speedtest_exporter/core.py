"""Core functionality of the speedtest exporter."""

from collections.abc import Callable
from datetime import datetime, timezone
import inspect
from typing import Any, TypeVar

from .config import ExporterConfig
from .exceptions import ListenerBindFailed, ProbeError
from .probes.base import BaseProbe
from .probes.sample import Sample
from .scheduler import CronScheduler
from .server import MetricsServer, create_server
from .store import SampleStore
from .utils.logger import get_logger

# Map of probe names to probe classes
_PROBES: dict[str, type[BaseProbe]] = {}

# Get logger for the core component
logger = get_logger(__name__)

B = TypeVar("B", bound=BaseProbe)


def _normalize_probe_name(name: str) -> str:
    """Normalize a probe name.

    Args:
        name: Name of the probe to normalize

    Returns:
        Normalized probe name

    Raises:
        ValueError: If the name is not a valid identifier
    """
    name = name.lower()
    if not name.isidentifier():
        raise ValueError(f"Invalid probe name '{name}'. Must be a valid Python identifier.")
    return name


def register_probe(name: str, probe_class: type[B]) -> None:
    """Register a probe class with the exporter.

    Args:
        name: Name to register the probe under
        probe_class: Probe class to register
    """
    # validate probe_class
    if not issubclass(probe_class, BaseProbe) or inspect.isabstract(probe_class):
        raise ValueError(
            f"Invalid probe class: {probe_class}. Must be a concrete subclass of BaseProbe."
        )

    # normalize name, check for duplicates, check for docstring
    name = _normalize_probe_name(name)
    if name in _PROBES:
        raise ValueError(f"Probe '{name}' is already registered.")
    if not (probe_class.__doc__ or "").strip():
        raise ValueError(f"Probe class '{probe_class.__name__}' must have a docstring.")
    _PROBES[name] = probe_class


def get_probe(name: str) -> type[BaseProbe]:
    """Get a probe class by name.

    Args:
        name: Name of the probe to retrieve

    Returns:
        The probe class (not an instance)

    Raises:
        ValueError: If the requested probe is not found
    """
    name = _normalize_probe_name(name)
    try:
        return _PROBES[name]
    except KeyError as e:
        raise ValueError(
            f"Probe '{name}' not found. Available probes: {', '.join(_PROBES.keys())}"
        ) from e


def list_probes() -> list[str]:
    """Get the names of all registered probes."""
    return list(_PROBES.keys())


def create_probe(name: str, **kwargs: Any) -> BaseProbe:
    """Create a probe by name.

    Arguments the probe does not accept are ignored, so callers can pass the
    same settings to every probe.

    Args:
        name: The name of the probe to create.
        kwargs: Additional arguments to pass to the probe.

    Returns:
        The probe instance.
    """
    probe_class = get_probe(name)

    # Filter kwargs to only include parameters in the probe's signature
    probe_params = inspect.signature(probe_class.__init__).parameters
    filtered_kwargs = {}
    unsupported = []
    for k, v in kwargs.items():
        if k in probe_params and k != "self":
            filtered_kwargs[k] = v
        else:
            unsupported.append(k)

    # log unsupported parameters
    if unsupported:
        logger.debug(f"Probe '{name}' does not support parameters: {', '.join(unsupported)}")

    return probe_class(**filtered_kwargs)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProbeDriver:
    """Runs the probe and publishes each attempt's outcome to the store."""

    def __init__(
        self,
        probe: BaseProbe,
        store: SampleStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the driver.

        Args:
            probe: Probe producing raw reports.
            store: Store receiving samples and attempt outcomes.
            clock: Source of wall-clock completion times.
        """
        self.probe = probe
        self.store = store
        self._clock = clock

    def run(self) -> Sample:
        """Run one probe attempt and publish its outcome.

        On success the new sample is published. On failure the attempt is
        recorded as failed and the previous sample is retained. Callers must
        not run two attempts concurrently.

        Returns:
            The published sample.

        Raises:
            ProbeExecutionFailed: If the probe could not run or exited non-zero
            ProbeParseFailed: If the probe output could not be decoded
            Exception: Any other error, after recording the failed attempt
        """
        logger.info("Starting speedtest...")
        try:
            raw = self.probe.execute()
            captured_at = self._clock()
            # decode outside of the store's critical section
            sample = Sample.from_json(raw, captured_at)
        except ProbeError as e:
            self.store.publish_failure(self._clock())
            logger.error(f"Speedtest failed, {type(e).__name__}: {e}")
            raise
        except Exception as e:
            # every failed attempt is recorded, also ones a probe did not anticipate
            self.store.publish_failure(self._clock())
            logger.error(f"Speedtest failed unexpectedly, {type(e).__name__}: {e}")
            raise

        logger.debug(f"Decoded '{sample.report_type}' report, result URL '{sample.result.url}'")
        self.store.publish_success(sample, captured_at)
        logger.info(
            f"Speedtest completed: download {sample.download.rate}, upload {sample.upload.rate}, "
            f"ping {sample.ping.latency_ms:.2f} ms, server '{sample.server.name}' "
            f"({sample.server.location}), ISP '{sample.isp}', reported at "
            f"{sample.reported_at or 'unknown time'}"
        )
        return sample


class SpeedtestExporter:
    """Wires the probe, store, scheduler, and metrics listener of one exporter process."""

    def __init__(
        self,
        config: ExporterConfig,
        probe: BaseProbe | str = "ookla",
        store: SampleStore | None = None,
    ) -> None:
        """Initialize the exporter.

        Args:
            config: Validated exporter configuration.
            probe: Probe instance, or the registered name of the probe to create.
            store: Store to publish to, a new empty store by default.
        """
        self.config = config
        self.store = store if store is not None else SampleStore()
        self.probe = (
            create_probe(probe, **config.probe_kwargs()) if isinstance(probe, str) else probe
        )
        self.driver = ProbeDriver(self.probe, self.store)
        self.scheduler = CronScheduler(config.cron, self.driver.run, name="speedtest")
        self._server: MetricsServer | None = None

    @property
    def server(self) -> MetricsServer | None:
        """Metrics listener, None until started."""
        return self._server

    def start(self) -> MetricsServer:
        """Run the initial probe, start the schedule, and bind the listener.

        A failed initial probe is logged and does not prevent startup.

        Returns:
            The bound listener, not yet serving.

        Raises:
            ListenerBindFailed: If the listener cannot bind
        """
        if self._server is not None:
            return self._server

        logger.info("Running initial speedtest...")
        self.scheduler.run_now()
        self.scheduler.start()

        try:
            self._server = create_server(self.store, self.config.host, self.config.port)
        except ListenerBindFailed:
            self.scheduler.stop(timeout=0)
            raise
        return self._server

    def serve_forever(self) -> None:
        """Start if needed, then serve scrapes until shut down."""
        self.start().serve_forever()

    def shutdown(self) -> None:
        """Stop serve_forever() running on another thread."""
        if self._server is not None:
            self._server.shutdown()

    def close(self, timeout: float | None = 1.0) -> None:
        """Release the listener and stop the schedule.

        Args:
            timeout: Seconds to wait for an in-flight probe, None waits indefinitely.
        """
        self.scheduler.stop(timeout=timeout)
        if self._server is not None:
            self._server.server_close()
            self._server = None
