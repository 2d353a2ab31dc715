"""Unit tests for RelayService, the serial ingestion loop."""

import asyncio
import datetime as dt
from typing import Optional
from unittest.mock import MagicMock, patch

import pytest

from nmea_relay.relay.broadcaster import Broadcaster
from nmea_relay.relay.config import RelayConfig
from nmea_relay.relay.errors import DeviceUnavailable, SocketUnavailable
from nmea_relay.relay.ntp_responder import NTPResponder
from nmea_relay.relay.parsers import SentenceDecoder
from nmea_relay.relay.service import RelayService
from nmea_relay.relay.time_tracker import TimeTracker
from nmea_relay.relay.transports import BaseStreamTransport

GGA = "GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"
RMC = "GPRMC,235959,A,4807.038,N,01131.000,E,022.4,084.4,010124,003.1,W"


class MockTransport(BaseStreamTransport):
    """Mock transport that yields queued chunks; exceptions are raised."""

    def __init__(self, connect_ok: bool = True):
        super().__init__()
        self.connect_ok = connect_ok
        self.queue: asyncio.Queue = asyncio.Queue()
        self.connect_calls = 0
        self.last_error: Optional[str] = None if connect_ok else "no such device"

    async def connect(self) -> bool:
        self.connect_calls += 1
        self._connected = self.connect_ok
        return self.connect_ok

    async def disconnect(self) -> None:
        self._connected = False

    async def read_chunk(self, timeout: Optional[float] = None) -> bytes:
        item = await self.queue.get()
        if isinstance(item, Exception):
            self._connected = False
            raise item
        return item


def mock_broadcaster():
    broadcaster = MagicMock(spec=Broadcaster)
    broadcaster.send.return_value = True
    broadcaster.status.return_value = {"open": True}
    return broadcaster


def mock_responder():
    responder = MagicMock(spec=NTPResponder)
    responder.status.return_value = {"state": "awaiting_request"}
    return responder


def make_service(relay_settings, transport=None, **kwargs):
    config = RelayConfig.from_mapping({**relay_settings, "shutdown_grace_s": "0.5"})
    return RelayService(
        config,
        transport=transport or MockTransport(),
        broadcaster=kwargs.pop("broadcaster", mock_broadcaster()),
        responder=kwargs.pop("responder", mock_responder()),
        tracker=kwargs.pop("tracker", TimeTracker(today=lambda: dt.date(2024, 5, 6))),
        **kwargs,
    )


async def wait_for(condition, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def host_ok():
    with patch("nmea_relay.relay.service.serial_port_exists", return_value=True), \
            patch("nmea_relay.relay.service.is_valid_broadcast_address", return_value=True):
        yield


class TestStartup:
    """Test host validation and subsystem startup."""

    @pytest.mark.asyncio
    async def test_invalid_host_does_not_start_relay(self, relay_settings):
        service = make_service(relay_settings)
        with patch("nmea_relay.relay.service.serial_port_exists", return_value=False), \
                patch("nmea_relay.relay.service.is_valid_broadcast_address", return_value=False):
            assert await service.start() is False

        health = service.health()
        assert health["status"] == "unhealthy"
        assert "serial port" in health["errors"]["config"]
        assert "broadcast address" in health["errors"]["config"]
        assert service.transport.connect_calls == 0
        service.broadcaster.start.assert_not_called()
        service.responder.start.assert_not_called()
        await service.stop()

    @pytest.mark.asyncio
    async def test_serial_open_failure(self, relay_settings, host_ok):
        service = make_service(relay_settings, transport=MockTransport(connect_ok=False))

        assert await service.start() is False
        health = service.health()
        assert health["status"] == "unhealthy"
        assert "no such device" in health["errors"]["serial"]
        await service.stop()

    @pytest.mark.asyncio
    async def test_start_and_stop(self, relay_settings, host_ok):
        service = make_service(relay_settings)

        assert await service.start() is True
        assert service.state == "running"
        assert service.is_relaying is True
        assert service.health()["status"] == "healthy"
        assert await service.start() is True

        await service.stop()
        assert service.state == "stopped"
        assert service.is_relaying is False
        service.broadcaster.stop.assert_awaited()
        service.responder.stop.assert_awaited()
        assert service.transport.is_connected is False

    @pytest.mark.asyncio
    async def test_responder_bind_failure_only_disables_ntp(self, relay_settings, host_ok):
        responder = mock_responder()
        responder.start.side_effect = SocketUnavailable("NTP port 123 is already in use")
        service = make_service(relay_settings, responder=responder)

        assert await service.start() is True
        await service.transport.queue.put(f"${GGA}\r\n".encode())
        await wait_for(lambda: service.last_fix is not None)

        health = service.health()
        assert health["status"] == "degraded"
        assert "already in use" in health["errors"]["ntp"]
        service.broadcaster.send.assert_called_with(GGA)
        await service.stop()

    @pytest.mark.asyncio
    async def test_broadcaster_bind_failure_keeps_ingesting(self, relay_settings, host_ok):
        broadcaster = mock_broadcaster()
        broadcaster.start.side_effect = SocketUnavailable("Cannot open broadcast socket")
        broadcaster.send.return_value = False
        service = make_service(relay_settings, broadcaster=broadcaster)

        assert await service.start() is True
        await service.transport.queue.put(f"${RMC}\r\n".encode())
        await wait_for(lambda: service.tracker.is_set)

        assert service.health()["errors"]["broadcaster"]
        assert service.stats["broadcast"] == 0
        await service.stop()


class TestIngestion:
    """Test per-chunk and per-sentence processing."""

    @pytest.mark.asyncio
    async def test_sentences_are_relayed_in_order(self, relay_settings, host_ok):
        service = make_service(relay_settings)
        await service.start()

        stream = f"${GGA}\r\n${RMC}\r\n$GPGSV,3,1,11\r\n".encode()
        await service.transport.queue.put(stream[:30])
        await service.transport.queue.put(stream[30:])
        await wait_for(lambda: service.stats["sentences"] == 3)

        sent = [call.args[0] for call in service.broadcaster.send.call_args_list]
        assert sent == [GGA, RMC, "GPGSV,3,1,11"]
        assert service.last_fix.time == "123519"
        assert service.last_fix.num_satellites == 8
        assert service.tracker.current_time() == dt.datetime(2024, 1, 1, 23, 59, 59, tzinfo=dt.timezone.utc)
        await service.stop()

    @pytest.mark.asyncio
    async def test_handle_chunk_directly(self, relay_settings):
        service = make_service(relay_settings)

        assert await service.handle_chunk(b"$GPGSV,1\r\n$GPG") == ["GPGSV,1"]
        assert await service.handle_chunk(b"SV,2\r\n") == ["GPGSV,2"]
        assert service.stats["bytes"] == 20

    @pytest.mark.asyncio
    async def test_bad_checksum_is_not_relayed(self, relay_settings):
        service = make_service(relay_settings)

        await service.handle_chunk(f"$GPGSV,3,1,11*00\r\n${GGA}\r\n".encode())

        service.broadcaster.send.assert_called_once_with(GGA)
        assert service.stats["checksum_errors"] == 1
        assert service.last_fix is not None

    @pytest.mark.asyncio
    async def test_required_checksum_applies_to_injected_tracker(self, relay_settings):
        service = make_service({**relay_settings, "require_checksum": "true"})
        assert service.tracker.decoder is service.decoder

        await service.handle_chunk(f"${RMC}\r\n${GGA}\r\n".encode())

        service.broadcaster.send.assert_called_once_with(GGA)
        assert service.stats["checksum_errors"] == 1
        assert service.tracker.current_time() == dt.datetime(2024, 5, 6, 12, 35, 19, tzinfo=dt.timezone.utc)

    @pytest.mark.asyncio
    async def test_strict_tracker_decoder_follows_service_policy(self, relay_settings):
        tracker = TimeTracker(SentenceDecoder(require_checksum=True), today=lambda: dt.date(2024, 5, 6))
        service = make_service(relay_settings, tracker=tracker)

        await service.handle_chunk(f"${RMC}\r\n".encode())

        service.broadcaster.send.assert_called_once_with(RMC)
        assert service.tracker.current_time() == dt.datetime(2024, 1, 1, 23, 59, 59, tzinfo=dt.timezone.utc)

    @pytest.mark.asyncio
    async def test_per_sentence_errors_do_not_stop_processing(self, relay_settings):
        service = make_service(relay_settings)
        previous = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
        service.tracker.set(previous)

        await service.handle_chunk(
            b"$GPGGA,99x999,4807.038,N\r\n"
            b"$GPGGA,123519,4807.038,N,01131.000,E,1,xx\r\n"
            b"$GPGSV,3,1,11\r\n"
        )

        assert service.stats["time_errors"] == 1
        assert service.stats["field_errors"] == 1
        assert service.broadcaster.send.call_count == 3
        assert service.last_fix.time == "99x999"
        assert service.tracker.current_time() == dt.datetime(2024, 5, 6, 12, 35, 19, tzinfo=dt.timezone.utc)

    @pytest.mark.asyncio
    async def test_device_loss_stops_relay_only(self, relay_settings, host_ok):
        service = make_service(relay_settings)
        await service.start()

        await service.transport.queue.put(DeviceUnavailable("Serial stream ended on /dev/ttyTEST0 (EOF)"))
        await wait_for(lambda: not service.is_relaying)

        health = service.health()
        assert health["status"] == "degraded"
        assert "EOF" in health["errors"]["serial"]
        service.responder.stop.assert_not_called()
        await service.stop()


class TestShutdown:
    """Test cancellation and the shutdown grace period."""

    @pytest.mark.asyncio
    async def test_shutdown_event_cancels_read_loop(self, relay_settings, host_ok):
        service = make_service(relay_settings)
        await service.start()

        service.request_shutdown()
        await wait_for(lambda: not service.is_relaying)
        await service.stop()
        assert service.state == "stopped"

    @pytest.mark.asyncio
    async def test_run_until_shutdown(self, relay_settings, host_ok):
        service = make_service(relay_settings)
        runner = asyncio.create_task(service.run())
        await wait_for(lambda: service.is_relaying)

        service.request_shutdown()
        await asyncio.wait_for(runner, timeout=2.0)
        assert service.state == "stopped"

    @pytest.mark.asyncio
    async def test_stubborn_task_is_forced(self, relay_settings, host_ok):
        service = make_service(relay_settings)
        await service.start()
        release = asyncio.Event()

        async def stubborn():
            while not release.is_set():
                try:
                    await release.wait()
                except asyncio.CancelledError:
                    continue

        task = asyncio.create_task(stubborn())
        service._tasks.add(task)

        with patch("nmea_relay.relay.service.logger") as logger:
            await service.stop()

        assert any("forcefully" in str(call) for call in logger.warning.call_args_list)
        assert service.state == "stopped"
        release.set()
        await task
