"""pytest configuration: opt-in tests that run the real speedtest binary."""

import pytest


def pytest_addoption(parser):
    """Add command line options selecting tests that run a real speedtest."""
    parser.addoption(
        "--run-expensive",
        action="store_true",
        default=False,
        help="also run tests that invoke the real speedtest binary",
    )
    parser.addoption(
        "--run-only-expensive",
        action="store_true",
        default=False,
        help="only run tests that invoke the real speedtest binary",
    )


def pytest_configure(config):
    """Register the expensive marker."""
    config.addinivalue_line(
        "markers", "expensive: test runs the real speedtest binary and uses the network"
    )


def pytest_collection_modifyitems(config, items):
    """Skip expensive tests unless requested, or skip everything else when only they are."""
    if config.getoption("--run-only-expensive"):
        skip = pytest.mark.skip(reason="only running expensive tests")
        for item in items:
            if "expensive" not in item.keywords:
                item.add_marker(skip)
    elif not config.getoption("--run-expensive"):
        skip = pytest.mark.skip(reason="need --run-expensive option to run")
        for item in items:
            if "expensive" in item.keywords:
                item.add_marker(skip)
