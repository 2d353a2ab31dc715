"""Latest satellite-derived UTC instant."""

from __future__ import annotations

import datetime as dt
import time
from typing import Callable, Optional

from .parsers.nmea_decoder import SentenceDecoder, utc_today


class TimeTracker:
    """Single-slot holder for the most recent UTC instant seen on the stream.

    One writer (the ingestion loop) and any number of readers (the NTP
    responder). The slot holds an immutable ``datetime`` that is replaced by
    one reference assignment, so a reader sees either the old or the new
    value, never a mix.

    Time-only sentences (GGA) are anchored to ``today()`` at processing time,
    which is the host's UTC date and may differ from the receiver's around
    midnight.
    """

    def __init__(
        self,
        decoder: Optional[SentenceDecoder] = None,
        today: Callable[[], dt.date] = utc_today,
    ):
        self.decoder = decoder or SentenceDecoder()
        self._today = today
        self._current: Optional[dt.datetime] = None
        self._updated_monotonic = 0.0

    def update(self, sentence: str) -> Optional[dt.datetime]:
        """Extract time from ``sentence`` and store it.

        Returns:
            The new instant, or None if the sentence carries no time.

        Raises:
            ChecksumInvalid: checksum present but wrong; value unchanged
            TimeParseError: malformed time or date; value unchanged
        """
        instant = self.decoder.extract_time(sentence, today=self._today)
        if instant is None:
            return None
        self.set(instant)
        return instant

    def set(self, instant: dt.datetime) -> None:
        if instant.tzinfo is None:
            raise ValueError("instant must be timezone-aware")
        self._current = instant.astimezone(dt.timezone.utc)
        self._updated_monotonic = time.monotonic()

    def current_time(self) -> Optional[dt.datetime]:
        """Last derived instant, or None before the first update."""
        return self._current

    @property
    def is_set(self) -> bool:
        return self._current is not None

    def age_seconds(self) -> Optional[float]:
        """Seconds since the last update, or None if never updated."""
        if self._current is None:
            return None
        return max(0.0, time.monotonic() - self._updated_monotonic)


__all__ = ["TimeTracker"]
