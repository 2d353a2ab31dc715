"""NMEA sentence validation, field decoding and time extraction.

Sentences are accepted with or without the leading ``$`` start marker. The
``*HH`` checksum suffix is optional on the wire; when it is present it must
match, when it is absent the sentence is accepted unless the decoder was
built with ``require_checksum=True``.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Any, Callable, Dict, Optional

from ..constants import (
    CHECKSUM_DELIMITER,
    FIELD_SEPARATOR,
    POSITION_FIX_TYPE,
    RECOGNIZED_SENTENCE_TYPES,
    RECOMMENDED_MINIMUM_TYPE,
    TIME_DATE_TYPE,
)
from ..errors import ChecksumInvalid, MalformedField, TimeParseError
from .nmea_types import FixRecord

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")
_HEX_RE = re.compile(r"[0-9A-Fa-f]{2}")
_HMS_RE = re.compile(r"([0-9]{2})([0-9]{2})([0-9]{2})(?:\.([0-9]+))?")
_DDMMYY_RE = re.compile(r"([0-9]{2})([0-9]{2})([0-9]{2})")


# ----------------------------------------------------------------------
# Checksum
# ----------------------------------------------------------------------

def _split_checksum(sentence: str) -> tuple[str, Optional[str]]:
    """Return (payload, checksum text) with the start marker removed."""
    body = sentence[1:] if sentence.startswith("$") else sentence
    payload, delimiter, checksum = body.partition(CHECKSUM_DELIMITER)
    return payload, (checksum if delimiter else None)


def compute_checksum(payload: str) -> int:
    """XOR of every character code in ``payload``."""
    calculated = 0
    for char in payload:
        calculated ^= ord(char)
    return calculated


def has_checksum(sentence: str) -> bool:
    return CHECKSUM_DELIMITER in sentence


def verify_checksum(sentence: str) -> bool:
    """Validate the ``*HH`` suffix. A missing or malformed suffix fails."""
    payload, checksum = _split_checksum(sentence)
    if checksum is None or not _HEX_RE.fullmatch(checksum):
        return False
    return compute_checksum(payload) == int(checksum, 16)


def _check(sentence: str, require_checksum: bool) -> str:
    payload, checksum = _split_checksum(sentence)
    if checksum is None:
        if require_checksum:
            raise ChecksumInvalid(sentence)
        return payload
    if not _HEX_RE.fullmatch(checksum):
        raise ChecksumInvalid(sentence)
    calculated = compute_checksum(payload)
    if calculated != int(checksum, 16):
        raise ChecksumInvalid(sentence, expected=f"{calculated:02X}", actual=checksum.upper())
    return payload


def split_fields(sentence: str, *, require_checksum: bool = False) -> list[str]:
    """Verify the checksum, strip it and the start marker, split on commas.

    This is the generic decode path; it works for any sentence type.

    Raises:
        ChecksumInvalid: checksum present but wrong (or absent while required)
    """
    return _check(sentence, require_checksum).split(FIELD_SEPARATOR)


def sentence_type(fields: list[str]) -> str:
    """Sentence type from the address field, e.g. ``GGA`` for ``GPGGA``."""
    if not fields:
        return ""
    return fields[0][-3:].upper()


# ----------------------------------------------------------------------
# Numeric fields
# ----------------------------------------------------------------------

def _parse_int(raw: str, index: int) -> int:
    if not raw:
        return 0
    if not _INT_RE.fullmatch(raw):
        raise MalformedField("int", index, raw)
    return int(raw)


def _parse_float(raw: str, index: int) -> float:
    if not raw:
        return 0.0
    if not _FLOAT_RE.fullmatch(raw):
        raise MalformedField("float", index, raw)
    return float(raw)


def _text(raw: str, index: int) -> str:
    return raw


# (attribute, field index, converter); index 0 is the address field
_GGA_LAYOUT: tuple[tuple[str, int, Callable[[str, int], Any]], ...] = (
    ("time", 1, _text),
    ("latitude", 2, _text),
    ("latitude_direction", 3, _text),
    ("longitude", 4, _text),
    ("longitude_direction", 5, _text),
    ("fix_quality", 6, _text),
    ("num_satellites", 7, _parse_int),
    ("horizontal_dilution", 8, _parse_float),
    ("altitude", 9, _parse_float),
    ("altitude_unit", 10, _text),
    ("geoid_separation", 11, _parse_float),
    ("geoid_separation_unit", 12, _text),
    ("age_of_dgps_data", 13, _parse_float),
    ("dgps_station_id", 14, _text),
)


def decode_gga(fields: list[str]) -> FixRecord:
    values: Dict[str, Any] = {}
    for name, index, convert in _GGA_LAYOUT:
        raw = fields[index] if index < len(fields) else ""
        values[name] = convert(raw, index)
    return FixRecord(**values)


# ----------------------------------------------------------------------
# Time and date
# ----------------------------------------------------------------------

def _parse_hms(value: str) -> dt.time:
    """Parse NMEA ``hhmmss[.sss]`` to an aware UTC time."""
    match = _HMS_RE.fullmatch(value)
    if not match:
        raise TimeParseError("time", value, "expected hhmmss[.sss]")
    hour, minute, second, frac = match.groups()
    micro = int((frac or "0")[:6].ljust(6, "0"))
    try:
        return dt.time(int(hour), int(minute), int(second), micro, tzinfo=dt.timezone.utc)
    except ValueError as exc:
        raise TimeParseError("time", value, str(exc)) from exc


def _parse_date(value: str) -> dt.date:
    """Parse NMEA ``ddmmyy``. Two-digit years are taken as 20yy."""
    match = _DDMMYY_RE.fullmatch(value)
    if not match:
        raise TimeParseError("date", value, "expected ddmmyy")
    day, month, year = (int(part) for part in match.groups())
    try:
        return dt.date(2000 + year, month, day)
    except ValueError as exc:
        raise TimeParseError("date", value, str(exc)) from exc


def _parse_zda_date(fields: list[str]) -> Optional[dt.date]:
    """ZDA carries day, month and four-digit year in separate fields."""
    parts = [fields[i] if i < len(fields) else "" for i in (2, 3, 4)]
    if not any(parts):
        return None
    raw = "/".join(parts)
    if not all(part.isdigit() for part in parts):
        raise TimeParseError("date", raw, "expected dd,mm,yyyy")
    try:
        return dt.date(int(parts[2]), int(parts[1]), int(parts[0]))
    except ValueError as exc:
        raise TimeParseError("date", raw, str(exc)) from exc


def extract_time(
    sentence: str,
    *,
    today: Callable[[], dt.date],
    require_checksum: bool = False,
) -> Optional[dt.datetime]:
    """Derive a UTC instant from a time-bearing sentence.

    RMC and ZDA carry a date; GGA carries time only and is anchored to
    ``today()``, which is the processing date, not the receiver's.

    Returns:
        The instant, or None if the sentence carries no time (other types,
        or an empty time field before the receiver has a fix).

    Raises:
        ChecksumInvalid: checksum present but wrong
        TimeParseError: time or date field present but malformed
    """
    fields = split_fields(sentence, require_checksum=require_checksum)
    kind = sentence_type(fields)
    if kind not in (POSITION_FIX_TYPE, RECOMMENDED_MINIMUM_TYPE, TIME_DATE_TYPE):
        return None

    time_str = fields[1] if len(fields) > 1 else ""
    if not time_str:
        return None
    time_obj = _parse_hms(time_str)

    date_obj: Optional[dt.date] = None
    if kind == RECOMMENDED_MINIMUM_TYPE:
        date_str = fields[9] if len(fields) > 9 else ""
        if date_str:
            date_obj = _parse_date(date_str)
    elif kind == TIME_DATE_TYPE:
        date_obj = _parse_zda_date(fields)

    if date_obj is None:
        date_obj = today()
    return dt.datetime.combine(date_obj, time_obj)


def utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


# ----------------------------------------------------------------------
# Decoder
# ----------------------------------------------------------------------

class SentenceDecoder:
    """Stateless NMEA decoder.

    Only GGA is decoded into a structured record. Other recognized types
    decode to nothing (an empty document at the entry point), and
    unrecognized types are left alone so the relay can still forward them.
    """

    def __init__(self, require_checksum: bool = False):
        self.require_checksum = require_checksum

    def verify_checksum(self, sentence: str) -> bool:
        return verify_checksum(sentence)

    def split_fields(self, sentence: str) -> list[str]:
        return split_fields(sentence, require_checksum=self.require_checksum)

    @staticmethod
    def is_recognized(kind: str) -> bool:
        return kind in RECOGNIZED_SENTENCE_TYPES

    def decode(self, sentence: str) -> Optional[FixRecord]:
        """Decode ``sentence`` into a FixRecord if it is a GGA sentence.

        Raises:
            ChecksumInvalid: checksum present but wrong
            MalformedField: a numeric GGA field does not parse
        """
        fields = self.split_fields(sentence)
        if sentence_type(fields) == POSITION_FIX_TYPE:
            return decode_gga(fields)
        return None

    def decode_document(self, sentence: str) -> Dict[str, Any]:
        """Generic key/value document for the decode entry point."""
        record = self.decode(sentence)
        return record.to_dict() if record is not None else {}

    def extract_time(
        self,
        sentence: str,
        today: Callable[[], dt.date] = utc_today,
    ) -> Optional[dt.datetime]:
        return extract_time(sentence, today=today, require_checksum=self.require_checksum)


__all__ = [
    "SentenceDecoder",
    "compute_checksum",
    "decode_gga",
    "extract_time",
    "has_checksum",
    "sentence_type",
    "split_fields",
    "utc_today",
    "verify_checksum",
]
