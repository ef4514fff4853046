"""Tests for rendering the metrics document."""

import copy
from datetime import datetime, timedelta, timezone
import re
import unittest

from speedtest_exporter.exposition import METRICS, MetricKind, escape_label_value, render
from speedtest_exporter.probes.sample import Sample
from speedtest_exporter.probes.static import STATIC_REPORT
from speedtest_exporter.store import Snapshot

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

EXPECTED_ORDER = [
    "speedtest_ping_latency_ms",
    "speedtest_ping_jitter_ms",
    "speedtest_download_bandwidth_mbps",
    "speedtest_upload_bandwidth_mbps",
    "speedtest_download_bytes_total",
    "speedtest_upload_bytes_total",
    "speedtest_packet_loss_percent",
    "speedtest_last_run_timestamp_seconds",
    "speedtest_run_success",
    "speedtest_download_latency_iqm_ms",
    "speedtest_download_latency_low_ms",
    "speedtest_download_latency_high_ms",
    "speedtest_download_latency_jitter_ms",
    "speedtest_upload_latency_iqm_ms",
    "speedtest_upload_latency_low_ms",
    "speedtest_upload_latency_high_ms",
    "speedtest_upload_latency_jitter_ms",
    "speedtest_server_id",
    "speedtest_server_port",
    "speedtest_server_info",
    "speedtest_isp_info",
    "speedtest_interface_info",
    "speedtest_interface_is_vpn",
]


def make_sample(report=None):
    """Decode a report, the static report by default."""
    return Sample.from_report(report or copy.deepcopy(STATIC_REPORT), T0)


def value_of(document, name):
    """Get the value of the sample line of a metric."""
    match = re.search(rf"^{name}(\{{[^\n]*\}})? (\S+)$", document, re.MULTILINE)
    assert match, f"{name} not found"
    return match.group(2)


class TestDocumentShape(unittest.TestCase):
    """Test the layout of the document in every state."""

    def states(self):
        """Snapshots covering never run, failed, succeeded, and failed after success."""
        sample = make_sample()
        return {
            "cold": Snapshot(),
            "failed": Snapshot(None, T0, False),
            "succeeded": Snapshot(sample, T0, True),
            "failed_after_success": Snapshot(sample, T0 + timedelta(hours=1), False),
        }

    def test_catalog_order(self):
        """Test the catalog holds every metric once, in fixed order."""
        self.assertEqual([metric.name for metric in METRICS], EXPECTED_ORDER)

    def test_three_contiguous_lines_per_metric(self):
        """Test each metric renders HELP, TYPE, and one sample line, in catalog order."""
        for state, snapshot in self.states().items():
            with self.subTest(state=state):
                document = render(snapshot)
                self.assertTrue(document.endswith("\n"))
                self.assertFalse(document.endswith("\n\n"))

                lines = document.splitlines()
                self.assertEqual(len(lines), 3 * len(METRICS))
                for i, metric in enumerate(METRICS):
                    help_line, type_line, sample_line = lines[3 * i : 3 * i + 3]
                    self.assertEqual(help_line, f"# HELP {metric.name} {metric.help}")
                    self.assertEqual(type_line, f"# TYPE {metric.name} {metric.kind.value}")
                    self.assertRegex(sample_line, rf"^{metric.name}(\{{.*\}})? \S+$")

    def test_rendering_is_deterministic(self):
        """Test rendering the same snapshot twice gives the same document."""
        for state, snapshot in self.states().items():
            with self.subTest(state=state):
                self.assertEqual(render(snapshot), render(snapshot))

    def test_counter_kinds(self):
        """Test byte totals are counters and everything else gauges."""
        counters = {m.name for m in METRICS if m.kind is MetricKind.COUNTER}
        self.assertEqual(
            counters, {"speedtest_download_bytes_total", "speedtest_upload_bytes_total"}
        )


class TestScenarios(unittest.TestCase):
    """Test the documents of the end-to-end scenarios."""

    def test_cold_start(self):
        """Test the document before any probe completed."""
        document = render(Snapshot())
        self.assertIn("\nspeedtest_run_success 0\n", document)
        self.assertIn("\nspeedtest_last_run_timestamp_seconds 0\n", document)
        self.assertIn("\nspeedtest_ping_latency_ms 0.000\n", document)
        self.assertIn("\nspeedtest_download_bytes_total 0\n", document)
        self.assertIn("\nspeedtest_packet_loss_percent 0.000\n", document)
        self.assertIn("\nspeedtest_interface_is_vpn 0\n", document)
        self.assertIn(
            '\nspeedtest_server_info{id="",name="",location="",country="",host="",ip=""} 1\n',
            document,
        )
        self.assertIn('\nspeedtest_isp_info{isp=""} 1\n', document)
        self.assertIn(
            '\nspeedtest_interface_info{internal_ip="",name="",mac_addr="",is_vpn="",'
            'external_ip=""} 1\n',
            document,
        )

    def test_happy_path(self):
        """Test the document after a successful probe."""
        document = render(Snapshot(make_sample(), T0, True))
        self.assertTrue(document.startswith("# HELP speedtest_ping_latency_ms "))
        self.assertIn("\nspeedtest_ping_latency_ms 12.500\n", document)
        self.assertIn("\nspeedtest_ping_jitter_ms 0.512\n", document)
        self.assertIn("\nspeedtest_download_bandwidth_mbps 750.000\n", document)
        self.assertIn("\nspeedtest_upload_bandwidth_mbps 100.000\n", document)
        self.assertIn("\nspeedtest_download_bytes_total 1044651200\n", document)
        self.assertIn("\nspeedtest_packet_loss_percent 0.000\n", document)
        self.assertIn("\nspeedtest_run_success 1\n", document)
        self.assertIn(f"\nspeedtest_last_run_timestamp_seconds {int(T0.timestamp())}\n", document)
        self.assertIn("\nspeedtest_download_latency_iqm_ms 24.160\n", document)
        self.assertIn("\nspeedtest_upload_latency_high_ms 388.120\n", document)
        self.assertIn("\nspeedtest_server_id 12345\n", document)
        self.assertIn("\nspeedtest_server_port 8080\n", document)
        self.assertIn('\nspeedtest_isp_info{isp="Test ISP"} 1\n', document)
        self.assertIn(
            '\nspeedtest_interface_info{internal_ip="192.168.1.20",name="eth0",'
            'mac_addr="02:42:AC:11:00:02",is_vpn="false",external_ip="203.0.113.7"} 1\n',
            document,
        )

    def test_failure_after_success_keeps_values(self):
        """Test a failed attempt keeps the values and clears the success flag."""
        failed_at = T0 + timedelta(minutes=30)
        document = render(Snapshot(make_sample(), failed_at, False))
        self.assertIn("\nspeedtest_download_bandwidth_mbps 750.000\n", document)
        self.assertIn("\nspeedtest_run_success 0\n", document)
        self.assertEqual(
            value_of(document, "speedtest_last_run_timestamp_seconds"),
            str(int(failed_at.timestamp())),
        )

    def test_server_info_labels(self):
        """Test server strings are carried in the info metric labels."""
        report = copy.deepcopy(STATIC_REPORT)
        report["server"].update(name="Foo", country="IT")
        document = render(Snapshot(make_sample(report), T0, True))
        self.assertRegex(document, r'\nspeedtest_server_info\{[^}]*name="Foo"[^}]*country="IT"[^}]*\} 1\n')
        self.assertIn(
            '\nspeedtest_server_info{id="12345",name="Foo",location="Test Location",'
            'country="IT",host="speedtest.example.com",ip="198.51.100.10"} 1\n',
            document,
        )


class TestDerivedValues(unittest.TestCase):
    """Test conversions and defaults of individual metrics."""

    def test_bandwidth_conversion(self):
        """Test bytes per second render as bytes / 125000 with three decimals."""
        for bandwidth in [0, 1, 62, 63, 124999, 125000, 93750000, 1234567891, 10**12 + 7]:
            with self.subTest(bandwidth=bandwidth):
                report = copy.deepcopy(STATIC_REPORT)
                report["download"]["bandwidth"] = bandwidth
                report["upload"]["bandwidth"] = bandwidth
                document = render(Snapshot(make_sample(report), T0, True))
                expected = f"{bandwidth / 125000:.3f}"
                self.assertEqual(value_of(document, "speedtest_download_bandwidth_mbps"), expected)
                self.assertEqual(value_of(document, "speedtest_upload_bandwidth_mbps"), expected)

    def test_absent_packet_loss_renders_zero(self):
        """Test a report without packet loss renders zero."""
        report = copy.deepcopy(STATIC_REPORT)
        del report["packetLoss"]
        document = render(Snapshot(make_sample(report), T0, True))
        self.assertIn("\nspeedtest_packet_loss_percent 0.000\n", document)

    def test_packet_loss(self):
        """Test reported packet loss renders with three decimals."""
        report = copy.deepcopy(STATIC_REPORT)
        report["packetLoss"] = 1.23456
        document = render(Snapshot(make_sample(report), T0, True))
        self.assertIn("\nspeedtest_packet_loss_percent 1.235\n", document)

    def test_vpn(self):
        """Test the VPN flag renders in the gauge and the interface label."""
        report = copy.deepcopy(STATIC_REPORT)
        report["interface"]["isVpn"] = True
        document = render(Snapshot(make_sample(report), T0, True))
        self.assertIn("\nspeedtest_interface_is_vpn 1\n", document)
        self.assertIn('is_vpn="true"', document)

    def test_timestamp_whole_seconds(self):
        """Test the last run timestamp truncates to whole seconds."""
        at = T0 + timedelta(microseconds=999999)
        document = render(Snapshot(None, at, False))
        self.assertEqual(
            value_of(document, "speedtest_last_run_timestamp_seconds"), str(int(T0.timestamp()))
        )

    def test_failed_cold_start(self):
        """Test a failed first attempt still renders zeros with a timestamp."""
        document = render(Snapshot(None, T0, False))
        self.assertIn("\nspeedtest_run_success 0\n", document)
        self.assertIn("\nspeedtest_ping_latency_ms 0.000\n", document)
        self.assertEqual(
            value_of(document, "speedtest_last_run_timestamp_seconds"), str(int(T0.timestamp()))
        )


class TestLabelEscaping(unittest.TestCase):
    """Test label values cannot break the document."""

    def test_escape_label_value(self):
        """Test backslash, double quote, and newline are escaped."""
        self.assertEqual(escape_label_value("plain"), "plain")
        self.assertEqual(escape_label_value('a"b'), 'a\\"b')
        self.assertEqual(escape_label_value("a\\b"), "a\\\\b")
        self.assertEqual(escape_label_value("a\nb"), "a\\nb")

    def test_adversarial_isp(self):
        """Test an adversarial ISP name renders on a single well-formed line."""
        report = copy.deepcopy(STATIC_REPORT)
        report["isp"] = 'Evil" } 1\nspeedtest_run_success 0\\'
        document = render(Snapshot(make_sample(report), T0, True))
        self.assertEqual(len(document.splitlines()), 3 * len(METRICS))
        self.assertIn(
            '\nspeedtest_isp_info{isp="Evil\\" } 1\\nspeedtest_run_success 0\\\\"} 1\n', document
        )
        self.assertIn("\nspeedtest_run_success 1\n", document)
