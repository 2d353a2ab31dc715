"""Startup checks against the host: serial ports and subnet broadcast addresses."""

from __future__ import annotations

import ipaddress
import socket
from typing import List

import psutil
import serial.tools.list_ports

from nmea_relay.core.logging_utils import get_module_logger

logger = get_module_logger("Discovery")


def list_serial_ports() -> List[str]:
    """Device names of every serial port on the host, symlinks included."""
    return [port.device for port in serial.tools.list_ports.comports(include_links=True)]


def serial_port_exists(port: str) -> bool:
    return port in list_serial_ports()


def compute_broadcast_address(address: str, netmask: str) -> ipaddress.IPv4Address:
    """Directed broadcast address: the host address with every host bit set."""
    ip = int(ipaddress.IPv4Address(address))
    mask = int(ipaddress.IPv4Address(netmask))
    return ipaddress.IPv4Address(ip | (~mask & 0xFFFFFFFF))


def local_broadcast_addresses() -> List[ipaddress.IPv4Address]:
    """Broadcast address of every IPv4 address assigned to a local interface."""
    addresses = []
    for name, entries in psutil.net_if_addrs().items():
        for entry in entries:
            if entry.family != socket.AF_INET or not entry.netmask:
                continue
            try:
                addresses.append(compute_broadcast_address(entry.address, entry.netmask))
            except ValueError:
                logger.debug("Skipping %s address %s/%s", name, entry.address, entry.netmask)
    return addresses


def is_valid_broadcast_address(candidate: str) -> bool:
    """True if ``candidate`` is the subnet broadcast address of a local interface."""
    try:
        target = ipaddress.IPv4Address(candidate)
    except ValueError:
        return False
    return target in local_broadcast_addresses()


__all__ = [
    "compute_broadcast_address",
    "is_valid_broadcast_address",
    "list_serial_ports",
    "local_broadcast_addresses",
    "serial_port_exists",
]
