"""NMEA framing, NTP wire format and relay defaults."""

import datetime as dt

# Sentence framing
START_MARKER = b"$"
TERMINATOR = b"\r\n"
CHECKSUM_DELIMITER = "*"
FIELD_SEPARATOR = ","
# Single-byte text codec: every byte maps to one character and back
SENTENCE_ENCODING = "latin-1"
DEFAULT_MAX_BUFFER_BYTES = 4096

# Sentence types (last three characters of the address field)
POSITION_FIX_TYPE = "GGA"
RECOMMENDED_MINIMUM_TYPE = "RMC"
TIME_DATE_TYPE = "ZDA"
RECOGNIZED_SENTENCE_TYPES = frozenset({
    "GGA",
    "RMC",
    "GLL",
    "GSA",
    "GSV",
    "VTG",
    "ZDA",
    "GST",
    "TXT",
})

# NTP wire format
NTP_PACKET_SIZE = 48
NTP_HEADER = 0x1C  # LI=0, VN=3, Mode=4 (server)
NTP_TRANSMIT_OFFSET = 40
NTP_EPOCH = dt.datetime(1900, 1, 1, tzinfo=dt.timezone.utc)

# Serial configuration
DEFAULT_BAUD_RATE = 9600
DEFAULT_READ_CHUNK_SIZE = 1024
PARITY_NAMES = ("none", "odd", "even", "mark", "space")

# Service lifecycle
DEFAULT_SHUTDOWN_GRACE_S = 2.0

# HTTP surface
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8080
