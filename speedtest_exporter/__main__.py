"""Run the speedtest exporter CLI with `python -m speedtest_exporter`."""

from .cli import entrypoint

if __name__ == "__main__":
    entrypoint()
