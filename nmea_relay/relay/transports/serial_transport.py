"""Serial UART transport for GPS receivers.

Uses serial_asyncio so reads never block the event loop. Each read returns
whatever bytes are available; sentence boundaries are the framer's job.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

import serial
import serial_asyncio

from nmea_relay.core.logging_utils import get_module_logger

from ..constants import DEFAULT_BAUD_RATE, DEFAULT_READ_CHUNK_SIZE
from ..errors import DeviceUnavailable
from .base_transport import BaseStreamTransport

logger = get_module_logger("SerialTransport")

PARITY_MAP = {
    "none": serial.PARITY_NONE,
    "odd": serial.PARITY_ODD,
    "even": serial.PARITY_EVEN,
    "mark": serial.PARITY_MARK,
    "space": serial.PARITY_SPACE,
}


class SerialStreamTransport(BaseStreamTransport):
    """Serial transport yielding raw byte chunks.

    Example:
        transport = SerialStreamTransport("/dev/serial0", 9600)
        async with transport:
            async for chunk in transport.iter_chunks():
                framer.feed(chunk)
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD_RATE,
        parity: str = "none",
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ):
        """Initialize the serial transport.

        Args:
            port: Serial port path (e.g., '/dev/serial0', '/dev/ttyUSB0', 'COM3')
            baudrate: Serial baudrate (default 9600 for most GPS)
            parity: Parity name: none, odd, even, mark or space
            read_chunk_size: Upper bound on bytes returned per read
        """
        super().__init__()
        if parity.lower() not in PARITY_MAP:
            raise ValueError(f"Unknown parity '{parity}'")
        self.port = port
        self.baudrate = baudrate
        self.parity = parity.lower()
        self.read_chunk_size = read_chunk_size

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._last_error: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self._connected and self._reader is not None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    async def connect(self) -> bool:
        """Open the serial connection (8 data bits, 1 stop bit, no flow control).

        Returns:
            True if connection was successful
        """
        if self.is_connected:
            logger.debug("Already connected to %s", self.port)
            return True

        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self.port,
                baudrate=self.baudrate,
                parity=PARITY_MAP[self.parity],
                bytesize=serial.EIGHTBITS,
                stopbits=serial.STOPBITS_ONE,
            )
        except asyncio.CancelledError:
            raise
        except (serial.SerialException, OSError, ValueError) as exc:
            self._last_error = str(exc)
            logger.error(
                "Cannot open %s at %d baud (parity=%s): %s",
                self.port, self.baudrate, self.parity, exc
            )
            self._connected = False
            return False

        self._connected = True
        self._last_error = None
        logger.info("Connected to %s at %d baud (parity=%s)", self.port, self.baudrate, self.parity)
        return True

    async def disconnect(self) -> None:
        """Close the serial connection."""
        if self._writer is None:
            self._connected = False
            return

        writer = self._writer
        self._writer = None
        self._reader = None
        self._connected = False

        with contextlib.suppress(Exception):
            writer.close()

        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug("Timeout waiting for serial close on %s", self.port)
        except (serial.SerialException, OSError) as exc:
            logger.debug("Error closing serial on %s: %s", self.port, exc)

        logger.info("Disconnected from %s", self.port)

    async def read_chunk(self, timeout: Optional[float] = None) -> bytes:
        """Wait for and return the bytes currently available.

        Args:
            timeout: Maximum seconds to wait; None waits indefinitely

        Returns:
            A non-empty chunk, or b"" if the timeout expired

        Raises:
            DeviceUnavailable: not connected, stream ended or the device failed
        """
        if not self.is_connected or self._reader is None:
            raise DeviceUnavailable(f"Serial port {self.port} is not open")

        try:
            read = self._reader.read(self.read_chunk_size)
            chunk = await (asyncio.wait_for(read, timeout) if timeout is not None else read)
        except asyncio.TimeoutError:
            return b""
        except (serial.SerialException, OSError) as exc:
            self._last_error = str(exc)
            self._connected = False
            raise DeviceUnavailable(f"Read error on {self.port}: {exc}") from exc

        if not chunk:
            self._last_error = "Stream ended (EOF)"
            self._connected = False
            raise DeviceUnavailable(f"Serial stream ended on {self.port} (EOF)")

        return chunk


__all__ = ["PARITY_MAP", "SerialStreamTransport"]
