"""Publication of the latest sample to concurrent readers."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from .probes.sample import Sample
from .utils.rwlock import ReadWriteLock


@dataclass(frozen=True)
class Snapshot:
    """Consistent view of the exporter state as left by a single writer.

    Attributes:
        sample: Most recent successfully decoded sample, None if no probe succeeded yet.
        last_attempt_at: Completion time of the last probe attempt, None if none completed.
        last_attempt_ok: True if the last probe attempt produced the published sample.
    """

    sample: Sample | None = None
    last_attempt_at: datetime | None = None
    last_attempt_ok: bool = False


class SampleStore:
    """Holds the most recent sample and the outcome of the last probe attempt.

    Writers swap in a complete new snapshot while holding exclusive access, so a
    reader never observes fields from two different attempts.
    """

    def __init__(self) -> None:
        """Initialize an empty store, as at process start."""
        self._lock = ReadWriteLock()
        self._snapshot = Snapshot()

    def publish_success(self, sample: Sample, at: datetime) -> None:
        """Publish a new sample from a successful probe attempt.

        Args:
            sample: The decoded sample.
            at: Completion time of the attempt.
        """
        if not isinstance(sample, Sample):
            raise ValueError("sample must be a Sample instance")
        new_snapshot = Snapshot(sample=sample, last_attempt_at=at, last_attempt_ok=True)
        with self._lock.write_locked():
            self._snapshot = new_snapshot

    def publish_failure(self, at: datetime) -> None:
        """Record a failed probe attempt, retaining the previous sample.

        Args:
            at: Completion time of the attempt.
        """
        with self._lock.write_locked():
            self._snapshot = Snapshot(
                sample=self._snapshot.sample, last_attempt_at=at, last_attempt_ok=False
            )

    def snapshot(self) -> Snapshot:
        """Get a consistent view of the current state."""
        with self._lock.read_locked():
            return self._snapshot

    @contextmanager
    def reading(self) -> Iterator[Snapshot]:
        """Hold shared access for the duration of a block, e.g. one scrape rendering.

        Yields:
            The snapshot current when the block was entered.
        """
        with self._lock.read_locked():
            yield self._snapshot
