"""Example: Run one speedtest and print the metrics document.

This script demonstrates the smallest use of the speedtest_exporter library,
without a schedule or HTTP listener.
"""

from speedtest_exporter import ProbeDriver, SampleStore, create_probe, render

if __name__ == "__main__":
    # Use the static probe so the example runs without the speedtest binary.
    # Replace with create_probe("ookla") to run a real speedtest.
    store = SampleStore()
    driver = ProbeDriver(create_probe("static"), store)

    sample = driver.run()
    print(f"download {sample.download.rate}, upload {sample.upload.rate}")
    print(render(store.snapshot()), end="")
