"""GPS NMEA relay: framing, decoding, time tracking, UDP broadcast and NTP."""

from .broadcaster import Broadcaster
from .config import RelayConfig
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
from .ntp_responder import NTPResponder, ResponderState
from .parsers import FixRecord, SentenceDecoder, verify_checksum
from .service import RelayService
from .time_tracker import TimeTracker

__all__ = [
    "Broadcaster",
    "ChecksumInvalid",
    "ConfigurationInvalid",
    "DeviceUnavailable",
    "FixRecord",
    "MalformedField",
    "NTPResponder",
    "RelayConfig",
    "RelayError",
    "RelayService",
    "ResponderState",
    "SentenceDecoder",
    "SentenceFramer",
    "SocketUnavailable",
    "TimeParseError",
    "TimeTracker",
    "verify_checksum",
]
