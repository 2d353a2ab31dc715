"""Shared pytest configuration and fixtures for the relay test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a physical GPS receiver"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require physical hardware",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Shared Fixtures
# =============================================================================

def with_checksum(body: str) -> str:
    """Return ``$body*HH`` with a correct checksum."""
    from nmea_relay.relay.parsers.nmea_decoder import compute_checksum

    return f"${body}*{compute_checksum(body):02X}"


@pytest.fixture
def checksummed():
    """Factory that appends a valid checksum to a sentence body."""
    return with_checksum


@pytest.fixture
def gga_body() -> str:
    """Full 14-field GGA sentence body."""
    return "GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,"


@pytest.fixture
def relay_settings() -> dict:
    """Raw config values for a valid relay configuration."""
    return {
        "serial_port": "/dev/ttyTEST0",
        "baud_rate": "9600",
        "parity": "none",
        "broadcast_ip": "192.168.1.255",
        "broadcast_port": "10110",
        "ntp_port": "12300",
    }
