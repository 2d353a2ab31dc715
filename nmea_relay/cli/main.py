"""Command-line entry point for the NMEA relay."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from nmea_relay.api import APIServer, RelayApiController
from nmea_relay.core.logging_config import configure_logging
from nmea_relay.core.logging_utils import get_module_logger
from nmea_relay.relay.config import RelayConfig
from nmea_relay.relay.constants import PARITY_NAMES
from nmea_relay.relay.errors import ConfigurationInvalid
from nmea_relay.relay.service import RelayService

logger = get_module_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config.txt")
EXIT_CONFIG_INVALID = 2


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments. Unset flags fall back to the config file."""
    parser = argparse.ArgumentParser(
        description="NMEA relay - rebroadcast serial GPS sentences over UDP and serve GPS time over NTP"
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to the key = value config file (default: config.txt)"
    )

    parser.add_argument("--serial-port", help="Serial device, e.g. /dev/serial0")
    parser.add_argument("--baud-rate", type=int, help="Serial baud rate")
    parser.add_argument("--parity", choices=PARITY_NAMES, help="Serial parity")
    parser.add_argument("--broadcast-ip", help="Subnet broadcast address to relay to")
    parser.add_argument("--broadcast-port", type=int, help="UDP port to relay to")
    parser.add_argument("--ntp-port", type=int, help="UDP port for the NTP responder")

    parser.add_argument(
        "--log-level",
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        help="Logging level (default: info)"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Optional path to a rotating log file"
    )

    parser.add_argument(
        "--no-api",
        dest="api_enabled",
        action="store_const",
        const=False,
        help="Do not serve the HTTP API"
    )

    parser.add_argument("--api-port", type=int, help="HTTP API port (default: 8080)")

    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    keys = (
        "serial_port",
        "baud_rate",
        "parity",
        "broadcast_ip",
        "broadcast_port",
        "ntp_port",
        "log_level",
        "log_file",
        "api_enabled",
        "api_port",
    )
    return {key: getattr(args, key) for key in keys}


def install_signal_handlers(service: RelayService, loop: asyncio.AbstractEventLoop) -> None:
    """Register SIGINT/SIGTERM handlers that ask the service to shut down."""

    def signal_handler():
        if not service.shutdown_event.is_set():
            logger.info("Shutdown signal received")
            service.request_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler


async def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the relay process.

    Loads configuration, starts the relay and the optional HTTP API, then
    serves until SIGINT or SIGTERM. A relay that fails host validation or
    cannot open its serial port keeps the process alive so the health
    endpoint can report it.
    """
    args = parse_args(argv)
    configure_logging(args.log_level or "info")

    try:
        config = RelayConfig.load(args.config, _overrides(args))
    except ConfigurationInvalid as exc:
        for problem in exc.problems:
            logger.error("Configuration error: %s", problem)
        return EXIT_CONFIG_INVALID

    configure_logging(config.log_level, log_file=config.log_file or None)

    logger.info("=" * 60)
    logger.info("NMEA Relay Starting")
    logger.info("=" * 60)
    logger.info("Config file: %s", args.config)

    service = RelayService(config)
    install_signal_handlers(service, asyncio.get_running_loop())

    api_server: Optional[APIServer] = None
    if config.api_enabled:
        api_server = APIServer(
            RelayApiController(service),
            host=config.api_host,
            port=config.api_port,
            localhost_only=config.api_localhost_only,
        )
        try:
            await api_server.start()
        except OSError as exc:
            logger.error("Cannot start API server on %s:%d: %s", config.api_host, config.api_port, exc)
            api_server = None

    try:
        await service.run()
    finally:
        if api_server is not None:
            await api_server.stop()

    logger.info("=" * 60)
    logger.info("NMEA Relay Stopped")
    logger.info("=" * 60)
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
