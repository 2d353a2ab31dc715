"""Unit tests for the UDP broadcaster."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from nmea_relay.relay.broadcaster import Broadcaster
from nmea_relay.relay.errors import SocketUnavailable


def mock_transport():
    transport = MagicMock()
    transport.is_closing.return_value = False
    return transport


class TestBroadcaster:
    """Test datagram relay of sentences."""

    def test_send_before_start(self):
        broadcaster = Broadcaster("192.168.1.255", 10110)
        assert broadcaster.send("GPGSV,3,1,11") is False
        assert broadcaster.sent == 0

    @pytest.mark.asyncio
    async def test_one_datagram_per_sentence(self):
        transport = mock_transport()
        broadcaster = Broadcaster("192.168.1.255", 10110)
        with patch.object(
            asyncio.get_running_loop(),
            "create_datagram_endpoint",
            return_value=(transport, MagicMock()),
        ) as endpoint:
            await broadcaster.start()

        assert endpoint.call_args.kwargs["allow_broadcast"] is True
        assert broadcaster.send("GPGSV,3,1,11") is True
        assert broadcaster.send("GPGSV,3,2,11") is True
        transport.sendto.assert_any_call(b"GPGSV,3,1,11", ("192.168.1.255", 10110))
        assert transport.sendto.call_count == 2
        assert broadcaster.sent == 2

    @pytest.mark.asyncio
    async def test_send_error_does_not_stop_next_send(self):
        transport = mock_transport()
        transport.sendto.side_effect = [OSError("Network unreachable"), None]
        broadcaster = Broadcaster("192.168.1.255", 10110)
        with patch.object(
            asyncio.get_running_loop(),
            "create_datagram_endpoint",
            return_value=(transport, MagicMock()),
        ):
            await broadcaster.start()

        assert broadcaster.send("GPGSV,1") is False
        assert broadcaster.send("GPGSV,2") is True
        assert broadcaster.errors == 1
        assert broadcaster.sent == 1

    @pytest.mark.asyncio
    async def test_unencodable_text_is_counted(self):
        transport = mock_transport()
        broadcaster = Broadcaster("192.168.1.255", 10110)
        with patch.object(
            asyncio.get_running_loop(),
            "create_datagram_endpoint",
            return_value=(transport, MagicMock()),
        ):
            await broadcaster.start()

        assert broadcaster.send("GPTXT,☃") is False
        assert broadcaster.errors == 1
        transport.sendto.assert_not_called()

    @pytest.mark.asyncio
    async def test_bind_failure(self):
        broadcaster = Broadcaster("192.168.1.255", 10110)
        with patch.object(
            asyncio.get_running_loop(),
            "create_datagram_endpoint",
            side_effect=OSError("Permission denied"),
        ):
            with pytest.raises(SocketUnavailable):
                await broadcaster.start()

        assert broadcaster.is_open is False
        assert broadcaster.send("GPGSV,1") is False
        assert broadcaster.status()["error"] is not None

    @pytest.mark.asyncio
    async def test_payload_arrives_unmodified(self):
        loop = asyncio.get_running_loop()
        received = loop.create_future()

        class Receiver(asyncio.DatagramProtocol):
            def datagram_received(self, data, addr):
                if not received.done():
                    received.set_result(data)

        receiver, _ = await loop.create_datagram_endpoint(Receiver, local_addr=("127.0.0.1", 0))
        port = receiver.get_extra_info("sockname")[1]
        broadcaster = Broadcaster("127.0.0.1", port)
        sentence = "GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"
        try:
            await broadcaster.start()
            assert broadcaster.send(sentence) is True
            data = await asyncio.wait_for(received, timeout=2.0)
        finally:
            await broadcaster.stop()
            receiver.close()

        assert data == sentence.encode("ascii")
        assert broadcaster.is_open is False
