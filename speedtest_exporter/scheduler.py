"""Cron-driven scheduler that never runs two probes at once."""

from collections.abc import Callable
from datetime import datetime
import threading

from croniter import croniter

from .config import validate_cron
from .exceptions import ProbeError
from .utils.logger import get_logger

# Get logger
logger = get_logger(__name__)


class CronScheduler:
    """Runs a job on each tick of a cron schedule, dropping ticks while the job runs.

    The scheduler is either Idle or Running. A tick arriving while Idle starts
    the job on a worker thread; a tick arriving while Running is dropped, so a
    stalled job never builds up a backlog.

    Thread-safe: the Idle/Running state is a non-blocking lock.
    """

    def __init__(
        self,
        expression: str,
        job: Callable[[], object],
        *,
        name: str = "probe",
    ) -> None:
        """Initialize the scheduler.

        Args:
            expression: Cron expression of the schedule.
            job: Callable run on each accepted tick.
            name: Name used for threads and log messages.

        Raises:
            ConfigMissing: If the expression is malformed
        """
        self.expression = validate_cron(expression)
        self._job = job
        self._name = name

        # held while the job runs
        self._running = threading.Lock()

        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self._workers: list[threading.Thread] = []

    @property
    def is_running(self) -> bool:
        """True while a job is in flight."""
        return self._running.locked()

    @property
    def is_started(self) -> bool:
        """True while the timekeeper thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def next_fire_time(self, after: datetime | None = None) -> datetime:
        """Get the first scheduled time strictly after a given instant.

        Args:
            after: Reference instant, defaults to the current local time.

        Returns:
            The next tick as a timezone-aware datetime.
        """
        if after is None:
            after = datetime.now().astimezone()
        elif after.tzinfo is None:
            after = after.astimezone()
        return croniter(self.expression, after).get_next(datetime)

    def run_now(self) -> bool:
        """Run the job synchronously on the calling thread.

        Returns:
            True if the job ran, False if another run was already in flight.
        """
        if not self._running.acquire(blocking=False):
            logger.warning(f"Skipping {self._name} run, previous run still in progress")
            return False
        self._run_job()
        return True

    def tick(self) -> bool:
        """Start the job on a worker thread unless a run is already in flight.

        Returns:
            True if the job was started, False if the tick was dropped.
        """
        if not self._running.acquire(blocking=False):
            logger.warning(f"Dropping scheduled {self._name} run, previous run still in progress")
            return False

        worker = threading.Thread(
            target=self._run_job, name=f"{self._name}-worker", daemon=True
        )
        self._workers = [w for w in self._workers if w.is_alive()]
        self._workers.append(worker)
        worker.start()
        return True

    def _run_job(self) -> None:
        """Run the job, releasing the Running state afterwards. Must hold the lock."""
        try:
            self._job()
        except ProbeError as e:
            # probe failures are recorded and logged by the job itself
            logger.debug(f"Scheduled {self._name} run failed: {e}")
        except Exception:
            logger.exception(f"Unexpected error in scheduled {self._name} run")
        finally:
            self._running.release()

    def start(self) -> None:
        """Start the timekeeper thread."""
        if self.is_started:
            return

        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._timekeeper, name=f"{self._name}-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(f"Scheduled {self._name} runs with cron '{self.expression}'")

    def stop(self, timeout: float | None = None) -> None:
        """Stop the timekeeper thread and wait for in-flight runs.

        Args:
            timeout: Seconds to wait for each thread, None waits indefinitely.
        """
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        for worker in self._workers:
            worker.join(timeout)
        self._workers = [w for w in self._workers if w.is_alive()]

    def _timekeeper(self) -> None:
        """Sleep until each scheduled time and tick, until stopped."""
        while not self._stopping.is_set():
            now = datetime.now().astimezone()
            fire_at = self.next_fire_time(now)
            logger.debug(f"Next {self._name} run at {fire_at.isoformat()}")

            # wake early on stop, and re-check the clock after long sleeps
            if self._stopping.wait(max(0.0, (fire_at - now).total_seconds())):
                break
            if datetime.now().astimezone() < fire_at:
                continue
            self.tick()
