"""UDP broadcast of framed sentences."""

from __future__ import annotations

import asyncio
from typing import Optional

from nmea_relay.core.logging_utils import get_module_logger

from .constants import SENTENCE_ENCODING
from .errors import SocketUnavailable

logger = get_module_logger("Broadcaster")


class _BroadcastProtocol(asyncio.DatagramProtocol):
    def __init__(self, broadcaster: "Broadcaster"):
        self._broadcaster = broadcaster

    def error_received(self, exc: Exception) -> None:
        self._broadcaster._record_error(exc)


class Broadcaster:
    """Fire-and-forget relay of sentences as UDP broadcast datagrams.

    Each sentence becomes exactly one datagram, byte for byte. A failed send
    is logged and counted and never affects the next one; nothing is
    buffered or retried.
    """

    def __init__(self, address: str, port: int):
        self.address = address
        self.port = port
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._bind_error: Optional[str] = None
        self.sent = 0
        self.errors = 0

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    @property
    def last_error(self) -> Optional[str]:
        return self._bind_error

    async def start(self) -> None:
        """Open the broadcast socket.

        Raises:
            SocketUnavailable: the socket could not be created
        """
        if self.is_open:
            return
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _BroadcastProtocol(self),
                local_addr=("0.0.0.0", 0),
                allow_broadcast=True,
            )
        except OSError as exc:
            self._bind_error = f"Cannot open broadcast socket: {exc}"
            logger.error("%s; broadcast relay disabled", self._bind_error)
            raise SocketUnavailable(self._bind_error) from exc

        self._transport = transport
        logger.info("Broadcasting sentences to %s:%d", self.address, self.port)

    def send(self, sentence: str) -> bool:
        """Send one sentence. Returns False if it could not be handed to the socket."""
        if not self.is_open:
            return False
        try:
            data = sentence.encode(SENTENCE_ENCODING)
            self._transport.sendto(data, (self.address, self.port))
        except (OSError, UnicodeEncodeError) as exc:
            self._record_error(exc)
            return False
        self.sent += 1
        return True

    def _record_error(self, exc: Exception) -> None:
        self.errors += 1
        logger.warning("Error sending UDP broadcast to %s:%d: %s", self.address, self.port, exc)

    async def stop(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is not None:
            transport.close()
            logger.info("Broadcast socket closed")

    def status(self) -> dict:
        return {
            "open": self.is_open,
            "address": self.address,
            "port": self.port,
            "sent": self.sent,
            "errors": self.errors,
            "error": self._bind_error,
        }


__all__ = ["Broadcaster"]
