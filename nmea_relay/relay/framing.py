"""Reassembly of NMEA sentences from a raw serial byte stream.

The framer owns the stream buffer: bytes are appended as they arrive and
complete sentences are cut from the front. A sentence is the text strictly
between a ``$`` start marker and the next ``\\r\\n`` terminator. Bytes in
front of a terminator with no marker before it are discarded with that
terminator. Sentence text is capped at ``max_buffer_bytes``: once a
sentence passes the cap it is dropped and the framer resyncs on the last
start marker within the capped span, or else just past it. The buffer never
holds more than the cap plus the marker and a pending CR.

The framer is not thread- or task-safe; one reader feeds it at a time.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from nmea_relay.core.logging_utils import get_module_logger

from .constants import DEFAULT_MAX_BUFFER_BYTES, SENTENCE_ENCODING, START_MARKER, TERMINATOR

logger = get_module_logger("SentenceFramer")

_TERMINATOR_LEN = len(TERMINATOR)


class SentenceFramer:
    """Stateful sentence framer over an append-only, front-truncated buffer.

    Example:
        framer = SentenceFramer()
        for chunk in chunks:
            for sentence in framer.feed(chunk):
                handle(sentence)
    """

    def __init__(self, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES):
        if max_buffer_bytes <= 0:
            raise ValueError("max_buffer_bytes must be positive")
        self.max_buffer_bytes = max_buffer_bytes
        self._buffer = bytearray()
        self.discarded_lead_ins = 0
        self.overflows = 0

    @property
    def pending(self) -> bytes:
        """Bytes buffered but not yet framed."""
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def append(self, data: bytes) -> None:
        self._buffer.extend(data)

    def extract_next(self) -> Optional[str]:
        """Cut the next complete sentence from the buffer.

        Returns:
            The sentence text without marker and terminator, or None when no
            complete sentence is buffered yet.
        """
        buffer = self._buffer
        while True:
            end = buffer.find(TERMINATOR)
            # A trailing CR may be the first half of a terminator.
            limit = end if end != -1 else len(buffer) - int(buffer.endswith(b"\r"))
            start = buffer.find(START_MARKER, 0, limit)

            if start != -1 and limit - start - 1 > self.max_buffer_bytes:
                self._resync(start)
                continue

            if end == -1:
                self._trim_noise(start)
                return None

            if start == -1:
                # Corrupt lead-in: advance past the terminator so the
                # garbage cannot accumulate.
                logger.debug("Discarding %d bytes without start marker", end)
                del buffer[:end + _TERMINATOR_LEN]
                self.discarded_lead_ins += 1
                continue

            sentence = bytes(buffer[start + 1:end]).decode(SENTENCE_ENCODING)
            del buffer[:end + _TERMINATOR_LEN]
            return sentence

    def feed(self, chunk: bytes) -> List[str]:
        """Append ``chunk`` and return every sentence it completes."""
        self.append(chunk)
        sentences = []
        while (sentence := self.extract_next()) is not None:
            sentences.append(sentence)
        return sentences

    def reset(self) -> None:
        self._buffer.clear()

    def _resync(self, start: int) -> None:
        """Drop a sentence whose text has passed the cap.

        The cut falls on the first byte past the cap, so the outcome depends
        only on the bytes and never on how they were chunked.
        """
        cut = start + self.max_buffer_bytes + 2
        marker = self._buffer.rfind(START_MARKER, start + 1, cut)
        dropped = marker if marker != -1 else cut
        del self._buffer[:dropped]
        self.overflows += 1
        logger.warning(
            "Sentence exceeded %d bytes; dropped %d bytes and resynced",
            self.max_buffer_bytes,
            dropped,
        )

    def _trim_noise(self, start: int) -> None:
        buffer = self._buffer
        if len(buffer) <= self.max_buffer_bytes:
            return
        if start == -1:
            start = len(buffer) - int(buffer.endswith(b"\r"))
        if start:
            logger.debug("Discarding %d bytes of noise", start)
            del buffer[:start]


def frame(
    buffer: bytes,
    chunk: bytes,
    *,
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
) -> Tuple[bytes, List[str]]:
    """Pure framing step: ``(buffer, chunk) -> (new buffer, sentences)``."""
    framer = SentenceFramer(max_buffer_bytes)
    framer.append(buffer)
    sentences = framer.feed(chunk)
    return framer.pending, sentences


def frame_all(chunks: Iterable[bytes], **kwargs) -> Tuple[bytes, List[str]]:
    """Fold :func:`frame` over ``chunks``."""
    buffer = b""
    sentences: List[str] = []
    for chunk in chunks:
        buffer, found = frame(buffer, chunk, **kwargs)
        sentences.extend(found)
    return buffer, sentences


__all__ = ["SentenceFramer", "frame", "frame_all"]
