"""Byte stream transports."""

from .base_transport import BaseStreamTransport
from .serial_transport import PARITY_MAP, SerialStreamTransport

__all__ = ["BaseStreamTransport", "PARITY_MAP", "SerialStreamTransport"]
