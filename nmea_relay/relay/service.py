"""Serial-to-UDP NMEA relay with a GPS-disciplined NTP responder.

RelayService owns the whole pipeline. After validating the host
configuration it opens the serial port and runs one read loop: every chunk
is fed to the framer, and every framed sentence that passes its checksum is
broadcast, handed to the time tracker and, for GGA, decoded into the latest
fix. The NTP responder runs independently on its own socket and reads the
tracker.

Per-sentence errors are logged and counted and never stop the loop. A
configuration error prevents the relay from starting at all; a socket bind
error disables only the broadcaster or the responder; a serial failure stops
the relay but leaves the responder running. Nothing is retried.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Dict, List, Optional

from nmea_relay.core.asyncio_utils import cancel_and_wait, create_logged_task
from nmea_relay.core.logging_utils import get_module_logger

from .broadcaster import Broadcaster
from .config import RelayConfig
from .discovery import is_valid_broadcast_address, serial_port_exists
from .errors import (
    ChecksumInvalid,
    ConfigurationInvalid,
    DeviceUnavailable,
    MalformedField,
    RelayError,
    SocketUnavailable,
    TimeParseError,
)
from .framing import SentenceFramer
from .ntp_responder import NTPResponder
from .parsers.nmea_decoder import SentenceDecoder
from .parsers.nmea_types import FixRecord
from .time_tracker import TimeTracker
from .transports import BaseStreamTransport, SerialStreamTransport

logger = get_module_logger("RelayService")


class RelayService:
    """Ingestion loop plus the broadcaster and NTP responder it drives.

    Example:
        service = RelayService(RelayConfig.load(path))
        if await service.start():
            ...
        await service.stop()
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        transport: Optional[BaseStreamTransport] = None,
        broadcaster: Optional[Broadcaster] = None,
        responder: Optional[NTPResponder] = None,
        tracker: Optional[TimeTracker] = None,
        decoder: Optional[SentenceDecoder] = None,
    ):
        self.config = config
        self.decoder = decoder or SentenceDecoder(require_checksum=config.require_checksum)
        self.tracker = tracker or TimeTracker(self.decoder)
        # Relay and time extraction apply one checksum policy, injected tracker included.
        self.tracker.decoder = self.decoder
        self.framer = SentenceFramer(config.max_buffer_bytes)
        self.transport = transport or SerialStreamTransport(
            config.serial_port,
            config.baud_rate,
            config.parity,
            read_chunk_size=config.read_chunk_size,
        )
        self.broadcaster = broadcaster or Broadcaster(config.broadcast_ip, config.broadcast_port)
        self.responder = responder or NTPResponder(
            self.tracker,
            config.ntp_port,
            standard_timestamp=config.ntp_standard_timestamp,
        )

        self.last_fix: Optional[FixRecord] = None
        self.stats: Counter[str] = Counter()
        self.shutdown_event = asyncio.Event()

        # Serializes framing per device; the buffer has a single writer.
        self._frame_lock = asyncio.Lock()
        self._errors: Dict[str, str] = {}
        self._read_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._state = "idle"

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_relaying(self) -> bool:
        return self._read_task is not None and not self._read_task.done()

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def validate_host(self) -> None:
        """Check the serial port and broadcast address against this host.

        Raises:
            ConfigurationInvalid: with one entry per failed check
        """
        problems: List[str] = []
        if not serial_port_exists(self.config.serial_port):
            problems.append(f"serial port {self.config.serial_port} does not exist or is unavailable")
        if not is_valid_broadcast_address(self.config.broadcast_ip):
            problems.append(
                f"{self.config.broadcast_ip} is not the broadcast address of any local interface"
            )
        if problems:
            raise ConfigurationInvalid(problems)

    async def start(self) -> bool:
        """Validate, open every subsystem and start relaying.

        Returns:
            True if the relay is running. False if configuration or the
            serial device prevented it; the service then reports unhealthy.
        """
        if self._state == "running":
            logger.warning("NMEA relay already running")
            return True

        logger.info(
            "Starting NMEA relay: port=%s baud=%d parity=%s broadcast=%s:%d ntp_port=%d",
            self.config.serial_port,
            self.config.baud_rate,
            self.config.parity,
            self.config.broadcast_ip,
            self.config.broadcast_port,
            self.config.ntp_port,
        )

        try:
            self.validate_host()
        except ConfigurationInvalid as exc:
            self._fail("config", exc)
            return False

        if not await self.transport.connect():
            error = getattr(self.transport, "last_error", None) or "connect failed"
            self._fail("serial", DeviceUnavailable(f"Cannot open {self.config.serial_port}: {error}"))
            return False

        try:
            await self.broadcaster.start()
        except SocketUnavailable as exc:
            self._errors["broadcaster"] = str(exc)

        try:
            await self.responder.start()
        except SocketUnavailable as exc:
            self._errors["ntp"] = str(exc)

        self.shutdown_event.clear()
        self._read_task = create_logged_task(
            self._read_loop(), logger=logger, context="nmea-read-loop", pending=self._tasks
        )
        create_logged_task(
            self._watch_cancellation(), logger=logger, context="nmea-cancel-watch", pending=self._tasks
        )
        self._state = "running"
        logger.info("NMEA relay started")
        return True

    async def stop(self) -> None:
        """Signal shutdown, wait out the grace period, then release resources."""
        if self._state in ("idle", "stopped"):
            self._state = "stopped"
            await self._close_resources()
            return

        logger.info("Stopping NMEA relay...")
        self.shutdown_event.set()

        if self._tasks:
            still_running = await cancel_and_wait(
                set(self._tasks), timeout=self.config.shutdown_grace_s
            )
            if still_running:
                logger.warning(
                    "NMEA relay stop was forcefully canceled (%d task(s) still running after %.1fs)",
                    len(still_running),
                    self.config.shutdown_grace_s,
                )

        await self._close_resources()
        self._read_task = None
        self._state = "stopped"
        logger.info("NMEA relay stopped")

    async def run(self) -> None:
        """Start, then serve until shutdown is requested."""
        await self.start()
        await self.shutdown_event.wait()
        await self.stop()

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    async def _close_resources(self) -> None:
        await self.transport.disconnect()
        await self.broadcaster.stop()
        await self.responder.stop()

    def _fail(self, subsystem: str, exc: RelayError) -> None:
        self._errors[subsystem] = str(exc)
        self._state = "unhealthy"
        logger.error("NMEA relay not started: %s", exc)

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def _watch_cancellation(self) -> None:
        await self.shutdown_event.wait()
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()

    async def _read_loop(self) -> None:
        logger.debug("Read loop started for %s", self.config.serial_port)
        try:
            async for chunk in self.transport.iter_chunks():
                await self.handle_chunk(chunk)
        except asyncio.CancelledError:
            logger.info("Cancellation requested, stopping read loop")
            raise
        except DeviceUnavailable as exc:
            self._errors["serial"] = str(exc)
            logger.error("Serial device lost, relay stopped: %s", exc)
        logger.debug("Read loop ended for %s", self.config.serial_port)

    async def handle_chunk(self, chunk: bytes) -> List[str]:
        """Frame ``chunk`` and process every sentence it completes."""
        async with self._frame_lock:
            self.stats["bytes"] += len(chunk)
            sentences = self.framer.feed(chunk)
            for sentence in sentences:
                self.process_sentence(sentence)
            return sentences

    def process_sentence(self, sentence: str) -> None:
        """Verify one sentence, relay it, then extract its time and fix."""
        self.stats["sentences"] += 1
        try:
            self.decoder.split_fields(sentence)
        except ChecksumInvalid as exc:
            self.stats["checksum_errors"] += 1
            logger.warning("Not relaying sentence: %s", exc)
            return

        if self.broadcaster.send(sentence):
            self.stats["broadcast"] += 1

        try:
            self.tracker.update(sentence)
        except TimeParseError as exc:
            self.stats["time_errors"] += 1
            logger.warning("Ignoring time in sentence %r: %s", sentence, exc)

        try:
            record = self.decoder.decode(sentence)
        except MalformedField as exc:
            self.stats["field_errors"] += 1
            logger.warning("Cannot decode sentence %r: %s", sentence, exc)
            return
        if record is not None:
            self.last_fix = record

    # =========================================================================
    # Health
    # =========================================================================

    def health(self) -> Dict[str, Any]:
        """Per-subsystem health document."""
        if self._state == "unhealthy":
            status = "unhealthy"
        elif self._state != "running":
            status = self._state
        elif self._errors or not self.is_relaying:
            status = "degraded"
        else:
            status = "healthy"

        current = self.tracker.current_time()
        return {
            "status": status,
            "relay": {
                "running": self.is_relaying,
                "serial_port": self.config.serial_port,
                "buffered_bytes": len(self.framer),
                "discarded_lead_ins": self.framer.discarded_lead_ins,
                "buffer_overflows": self.framer.overflows,
                **dict(self.stats),
            },
            "broadcaster": self.broadcaster.status(),
            "ntp": self.responder.status(),
            "time": {
                "current": current.isoformat() if current else None,
                "age_seconds": self.tracker.age_seconds(),
            },
            "errors": self.errors,
        }


__all__ = ["RelayService"]
