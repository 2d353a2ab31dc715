"""NMEA parsing components."""

from .nmea_decoder import SentenceDecoder, verify_checksum
from .nmea_types import FixRecord

__all__ = ["FixRecord", "SentenceDecoder", "verify_checksum"]
