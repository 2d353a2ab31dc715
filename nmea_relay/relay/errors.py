"""Relay error taxonomy.

Per-sentence errors (``ChecksumInvalid``, ``MalformedField``,
``TimeParseError``) are logged by the ingestion loop and never stop it.
``ConfigurationInvalid``, ``SocketUnavailable`` and ``DeviceUnavailable``
disable the subsystem they belong to.
"""

from __future__ import annotations

from typing import Iterable, Optional


class RelayError(Exception):
    """Base class for all relay errors."""

    code = "RELAY_ERROR"


class ConfigurationInvalid(RelayError):
    """Missing or unusable setting, unknown serial port or bad broadcast address."""

    code = "CONFIGURATION_INVALID"

    def __init__(self, problems: Iterable[str] | str):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class ChecksumInvalid(RelayError):
    """The ``*HH`` suffix does not match the XOR of the sentence payload."""

    code = "CHECKSUM_INVALID"

    def __init__(self, sentence: str, expected: Optional[str] = None, actual: Optional[str] = None):
        self.sentence = sentence
        self.expected = expected
        self.actual = actual
        if expected is None:
            message = f"Invalid NMEA sentence checksum: {sentence!r}"
        else:
            message = f"Invalid NMEA sentence checksum: expected {expected}, got {actual}"
        super().__init__(message)


class MalformedField(RelayError):
    """A numeric field is present but does not parse."""

    code = "MALFORMED_FIELD"

    def __init__(self, kind: str, index: int, raw: str):
        self.kind = kind
        self.index = index
        self.raw = raw
        super().__init__(f"Malformed {kind} field at index {index}: {raw!r}")


class TimeParseError(RelayError):
    """A time or date field of a time-bearing sentence is malformed."""

    code = "TIME_PARSE_ERROR"

    def __init__(self, field: str, raw: str, reason: str = ""):
        self.field = field
        self.raw = raw
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Unparsable {field} {raw!r}{detail}")


class SocketUnavailable(RelayError):
    """A UDP socket could not be bound (typically the port is in use)."""

    code = "SOCKET_UNAVAILABLE"


class DeviceUnavailable(RelayError):
    """The serial device could not be opened or stopped delivering data."""

    code = "DEVICE_UNAVAILABLE"


__all__ = [
    "ChecksumInvalid",
    "ConfigurationInvalid",
    "DeviceUnavailable",
    "MalformedField",
    "RelayError",
    "SocketUnavailable",
    "TimeParseError",
]
