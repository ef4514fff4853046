"""Tests for the cron scheduler."""

from datetime import datetime, timedelta, timezone
import threading
import time
import unittest
from unittest import mock

from speedtest_exporter.exceptions import ConfigMissing, ProbeExecutionFailed
from speedtest_exporter.scheduler import CronScheduler


def wait_until(predicate, timeout=5.0):
    """Poll a predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class GatedJob:
    """Job that blocks on a gate and counts concurrent runs."""

    def __init__(self, error=None):
        self.gate = threading.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.error = error
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.gate.wait(5)
            if self.error is not None:
                raise self.error
        finally:
            with self._lock:
                self.active -= 1


class TestCronScheduler(unittest.TestCase):
    """Test the Idle/Running state machine of the scheduler."""

    def setUp(self):
        """Create a scheduler around a gated job."""
        self.job = GatedJob()
        self.scheduler = CronScheduler("*/5 * * * *", self.job, name="test")

    def tearDown(self):
        """Release the job and stop all threads."""
        self.job.gate.set()
        self.scheduler.stop(timeout=5)

    def test_invalid_expression(self):
        """Test malformed expressions are rejected on construction."""
        for expression in ["", "not a cron", "* * * *", "61 * * * *"]:
            with self.subTest(expression=expression):
                with self.assertRaises(ConfigMissing):
                    CronScheduler(expression, self.job)

    def test_tick_runs_job_on_worker(self):
        """Test a tick while idle starts the job without blocking the caller."""
        self.assertFalse(self.scheduler.is_running)
        self.assertTrue(self.scheduler.tick())
        self.assertTrue(wait_until(lambda: self.job.calls == 1))
        self.assertTrue(self.scheduler.is_running)

        self.job.gate.set()
        self.assertTrue(wait_until(lambda: not self.scheduler.is_running))

    def test_ticks_dropped_while_running(self):
        """Test ticks arriving while a job runs are dropped, not queued."""
        self.assertTrue(self.scheduler.tick())
        self.assertTrue(wait_until(lambda: self.job.calls == 1))

        with self.assertLogs("speedtest_exporter.scheduler", level="WARNING") as logs:
            for _ in range(3):
                self.assertFalse(self.scheduler.tick())
        self.assertEqual(len(logs.records), 3)
        self.assertIn("previous run still in progress", logs.output[0])

        self.job.gate.set()
        self.assertTrue(wait_until(lambda: not self.scheduler.is_running))
        self.assertEqual(self.job.calls, 1)
        self.assertEqual(self.job.max_active, 1)

        # idle again, so the next tick is accepted
        self.assertTrue(self.scheduler.tick())
        self.assertTrue(wait_until(lambda: self.job.calls == 2))
        self.assertTrue(wait_until(lambda: not self.scheduler.is_running))
        self.assertEqual(self.job.max_active, 1)

    def test_run_now(self):
        """Test a synchronous run returns after the job completes."""
        self.job.gate.set()
        self.assertTrue(self.scheduler.run_now())
        self.assertEqual(self.job.calls, 1)
        self.assertFalse(self.scheduler.is_running)

    def test_run_now_while_running(self):
        """Test a synchronous run is skipped while a job is in flight."""
        self.assertTrue(self.scheduler.tick())
        self.assertTrue(wait_until(lambda: self.job.calls == 1))
        self.assertFalse(self.scheduler.run_now())
        self.assertEqual(self.job.calls, 1)

    def test_probe_error_returns_to_idle(self):
        """Test a failing job does not wedge the scheduler."""
        job = GatedJob(error=ProbeExecutionFailed("simulated"))
        job.gate.set()
        scheduler = CronScheduler("@hourly", job)

        self.assertTrue(scheduler.run_now())
        self.assertFalse(scheduler.is_running)
        self.assertTrue(scheduler.run_now())
        self.assertEqual(job.calls, 2)

    def test_unexpected_error_logged(self):
        """Test unexpected job errors are logged with a traceback and do not propagate."""
        job = GatedJob(error=RuntimeError("boom"))
        job.gate.set()
        scheduler = CronScheduler("@hourly", job)

        with self.assertLogs("speedtest_exporter.scheduler", level="ERROR") as logs:
            self.assertTrue(scheduler.run_now())
        self.assertIn("Unexpected error", logs.output[0])
        self.assertIsNotNone(logs.records[0].exc_info)
        self.assertFalse(scheduler.is_running)

    def test_next_fire_time(self):
        """Test the next scheduled time is strictly after the reference."""
        after = datetime(2024, 5, 1, 12, 3, 10, tzinfo=timezone.utc)
        self.assertEqual(
            self.scheduler.next_fire_time(after),
            datetime(2024, 5, 1, 12, 5, tzinfo=timezone.utc),
        )
        on_tick = datetime(2024, 5, 1, 12, 5, tzinfo=timezone.utc)
        self.assertEqual(
            self.scheduler.next_fire_time(on_tick),
            datetime(2024, 5, 1, 12, 10, tzinfo=timezone.utc),
        )

    def test_next_fire_time_defaults_to_now(self):
        """Test the next scheduled time is in the near future."""
        fire_at = self.scheduler.next_fire_time()
        now = datetime.now().astimezone()
        self.assertIsNotNone(fire_at.tzinfo)
        self.assertGreater(fire_at, now)
        self.assertLessEqual(fire_at - now, timedelta(minutes=5))

    def test_descriptor(self):
        """Test descriptors are accepted."""
        scheduler = CronScheduler("@hourly", self.job)
        after = datetime(2024, 5, 1, 12, 3, tzinfo=timezone.utc)
        self.assertEqual(
            scheduler.next_fire_time(after), datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc)
        )

    def test_start_and_stop(self):
        """Test the timekeeper ticks on schedule and stops promptly."""
        self.job.gate.set()
        with mock.patch.object(
            self.scheduler,
            "next_fire_time",
            side_effect=lambda now: now + timedelta(milliseconds=20),
        ):
            self.scheduler.start()
            self.assertTrue(self.scheduler.is_started)
            self.assertTrue(wait_until(lambda: self.job.calls >= 3))

            started = time.monotonic()
            self.scheduler.stop(timeout=5)
            self.assertLess(time.monotonic() - started, 1.0)

        self.assertFalse(self.scheduler.is_started)
        self.assertEqual(self.job.max_active, 1)

    def test_stalled_job_drops_scheduled_ticks(self):
        """Test a stalled job causes scheduled ticks to be dropped, never overlapped."""
        with mock.patch.object(
            self.scheduler,
            "next_fire_time",
            side_effect=lambda now: now + timedelta(milliseconds=10),
        ):
            with self.assertLogs("speedtest_exporter.scheduler", level="WARNING"):
                self.scheduler.start()
                self.assertTrue(wait_until(lambda: self.job.calls == 1))
                time.sleep(0.2)
            self.assertEqual(self.job.calls, 1)

            self.job.gate.set()
            self.assertTrue(wait_until(lambda: self.job.calls >= 2))
            self.scheduler.stop(timeout=5)

        self.assertEqual(self.job.max_active, 1)

    def test_start_twice(self):
        """Test starting an already started scheduler keeps one timekeeper."""
        self.scheduler.start()
        thread = self.scheduler._thread
        self.scheduler.start()
        self.assertIs(self.scheduler._thread, thread)
