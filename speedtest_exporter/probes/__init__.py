"""Speedtest probes producing reports for the exporter."""
