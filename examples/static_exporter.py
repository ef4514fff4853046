"""Example: Serve metrics on localhost and scrape them once.

This script starts a complete exporter with the static probe on an ephemeral
port, scrapes /metrics like Prometheus would, and shuts down.
"""

import threading
from urllib.request import urlopen

from speedtest_exporter import ExporterConfig, SpeedtestExporter
from speedtest_exporter.probes.static import StaticProbe

if __name__ == "__main__":
    # Every 15 minutes, listening on a free localhost port
    config = ExporterConfig(cron="*/15 * * * *", host="127.0.0.1", port=0)
    exporter = SpeedtestExporter(config, probe=StaticProbe())

    # start() runs the initial speedtest and binds the listener
    server = exporter.start()
    thread = threading.Thread(target=exporter.serve_forever, daemon=True)
    thread.start()

    try:
        with urlopen(f"http://127.0.0.1:{server.server_port}/metrics", timeout=5) as response:
            print(response.headers["Content-Type"])
            for line in response.read().decode("utf-8").splitlines():
                if not line.startswith("#"):
                    print(line)
    finally:
        exporter.shutdown()
        thread.join(timeout=5)
        exporter.close()
