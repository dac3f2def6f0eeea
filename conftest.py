"""
Root conftest.py for pytest configuration
"""

import logging
import sys
from pathlib import Path

import pytest

# Get absolute paths
PROJECT_ROOT = Path(__file__).parent.absolute()
SRC_PATH = PROJECT_ROOT / "src"

# Add src directory to path so tests run from a plain checkout
sys.path.insert(0, str(SRC_PATH))
sys.path.insert(0, str(PROJECT_ROOT))

# Configure asyncio as early as possible
pytest_plugins = ["pytest_asyncio"]

# httpx/httpcore are chatty at DEBUG
for name in ["httpcore.connection", "httpcore.http11", "httpx"]:
    logging.getLogger(name).setLevel(logging.INFO)


def pytest_configure(config):
    """Register custom marks used in tests."""
    config.addinivalue_line(
        "markers", "network: mark tests that talk to the real catalog service"
    )


def pytest_addoption(parser):
    """Add custom command line options to pytest."""
    parser.addoption(
        "--run-network-tests",
        action="store_true",
        default=False,
        help="Run tests that fetch the live catalog",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """Skip network tests unless explicitly requested."""
    if config.getoption("--run-network-tests"):
        return
    skip_network = pytest.mark.skip(reason="needs --run-network-tests")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_network)
