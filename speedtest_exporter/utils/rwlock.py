"""Multi-reader / single-writer lock."""

from collections.abc import Iterator
from contextlib import contextmanager
import threading


class ReadWriteLock:
    """Lock allowing many concurrent readers or one exclusive writer.

    Waiting writers block new readers from entering, so a steady stream of
    scrapes cannot starve the probe publishing a new sample.
    """

    def __init__(self) -> None:
        """Initialize an unlocked lock."""
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        """Acquire shared access, blocking while a writer holds or awaits the lock."""
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        """Release shared access."""
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a matching acquire_read()")
            self._readers -= 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        """Acquire exclusive access, blocking until all readers and writers leave."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        """Release exclusive access."""
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without a matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Context manager holding shared access."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Context manager holding exclusive access."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
