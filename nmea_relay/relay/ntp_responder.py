"""Minimal NTP responder backed by the GPS time tracker.

This is a partial NTP server. Every reply is 48 bytes: byte 0 is the fixed
LI/VN/Mode header ``0x1C`` and bytes 40-47 carry the transmit timestamp.
Stratum, poll, precision, root delay/dispersion, reference id and the
reference, originate and receive timestamps are all left zero. Clients that
validate those fields will reject the reply.

By default the transmit field holds whole seconds since 1900-01-01 as one
big-endian 64-bit integer. With ``standard_timestamp=True`` it holds the
RFC 5905 layout instead (32-bit seconds, 32-bit fraction).

Before the tracker has seen any time the sentinel is the NTP epoch itself,
so the transmit field is all zero.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import errno
import struct
from enum import Enum
from typing import Optional, Tuple

from nmea_relay.core.logging_utils import get_module_logger

from .constants import NTP_EPOCH, NTP_HEADER, NTP_PACKET_SIZE, NTP_TRANSMIT_OFFSET
from .errors import SocketUnavailable
from .time_tracker import TimeTracker

logger = get_module_logger("NTPResponder")

Address = Tuple[str, int]


class ResponderState(Enum):
    IDLE = "idle"
    AWAITING_REQUEST = "awaiting_request"
    RESPONDING = "responding"
    STOPPED = "stopped"


def ntp_seconds(instant: Optional[dt.datetime]) -> Tuple[int, int]:
    """Return (seconds, microseconds) since the NTP epoch; (0, 0) if unset."""
    if instant is None:
        return 0, 0
    delta = instant - NTP_EPOCH
    seconds = delta.days * 86400 + delta.seconds
    if seconds < 0:
        return 0, 0
    return seconds, delta.microseconds


def build_response(instant: Optional[dt.datetime], *, standard_timestamp: bool = False) -> bytes:
    """Build a 48-byte NTP reply carrying ``instant`` as transmit time."""
    packet = bytearray(NTP_PACKET_SIZE)
    packet[0] = NTP_HEADER
    seconds, micros = ntp_seconds(instant)
    if standard_timestamp:
        fraction = (micros << 32) // 1_000_000
        struct.pack_into(">II", packet, NTP_TRANSMIT_OFFSET, seconds & 0xFFFFFFFF, fraction)
    else:
        struct.pack_into(">Q", packet, NTP_TRANSMIT_OFFSET, seconds)
    return bytes(packet)


class _NTPProtocol(asyncio.DatagramProtocol):
    def __init__(self, responder: "NTPResponder"):
        self._responder = responder

    def datagram_received(self, data: bytes, addr: Address) -> None:
        self._responder.handle_request(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning("NTP socket error: %s", exc)


class NTPResponder:
    """Answers NTP requests on ``port`` with the tracker's current instant.

    A bind failure is permanent: the responder moves to STOPPED, the error is
    logged once and later ``start()`` calls re-raise it without rebinding.

    Example:
        responder = NTPResponder(tracker, port=123)
        await responder.start()
        ...
        await responder.stop()
    """

    def __init__(
        self,
        tracker: TimeTracker,
        port: int,
        host: str = "0.0.0.0",
        standard_timestamp: bool = False,
    ):
        self.tracker = tracker
        self.port = port
        self.host = host
        self.standard_timestamp = standard_timestamp

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._state = ResponderState.IDLE
        self._bind_error: Optional[SocketUnavailable] = None
        self.requests_served = 0
        self.send_errors = 0

    @property
    def state(self) -> ResponderState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._transport is not None and self._state in (
            ResponderState.AWAITING_REQUEST,
            ResponderState.RESPONDING,
        )

    @property
    def last_error(self) -> Optional[str]:
        return str(self._bind_error) if self._bind_error else None

    @property
    def local_address(self) -> Optional[Address]:
        """Bound (host, port); useful when started on port 0."""
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")[:2]

    async def start(self) -> None:
        """Bind the UDP socket and start answering requests.

        Raises:
            SocketUnavailable: the port could not be bound (now or earlier)
        """
        if self._bind_error is not None:
            raise self._bind_error
        if self.is_running:
            logger.debug("NTP responder already running on port %d", self.port)
            return

        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _NTPProtocol(self),
                local_addr=(self.host, self.port),
            )
        except OSError as exc:
            self._state = ResponderState.STOPPED
            if exc.errno == errno.EADDRINUSE:
                message = f"NTP port {self.port} is already in use; NTP responder disabled"
            else:
                message = f"Cannot bind NTP port {self.port}: {exc}; NTP responder disabled"
            self._bind_error = SocketUnavailable(message)
            logger.error(message)
            raise self._bind_error from exc

        self._transport = transport
        self._state = ResponderState.AWAITING_REQUEST
        logger.info("NTP responder listening on %s:%d", self.host, self.port)

    def handle_request(self, data: bytes, addr: Address) -> Optional[bytes]:
        """Build and send the reply to one request; returns the reply."""
        if self._transport is None or self._state is ResponderState.STOPPED:
            return None

        if len(data) != NTP_PACKET_SIZE:
            logger.debug("NTP request from %s has %d bytes (expected %d)", addr, len(data), NTP_PACKET_SIZE)

        self._state = ResponderState.RESPONDING
        try:
            response = build_response(
                self.tracker.current_time(),
                standard_timestamp=self.standard_timestamp,
            )
            try:
                self._transport.sendto(response, addr)
            except OSError as exc:
                self.send_errors += 1
                logger.warning("Failed to send NTP reply to %s: %s", addr, exc)
                return None
            self.requests_served += 1
            return response
        finally:
            if self._state is ResponderState.RESPONDING:
                self._state = ResponderState.AWAITING_REQUEST

    async def stop(self) -> None:
        transport = self._transport
        self._transport = None
        self._state = ResponderState.STOPPED
        if transport is not None:
            transport.close()
            logger.info("NTP responder stopped")

    def status(self) -> dict:
        return {
            "state": self._state.value,
            "port": self.port,
            "requests_served": self.requests_served,
            "send_errors": self.send_errors,
            "error": self.last_error,
        }


__all__ = ["NTPResponder", "ResponderState", "build_response", "ntp_seconds"]
