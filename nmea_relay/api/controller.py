"""
API Controller - bridge between the REST routes and the relay.

Holds the decode entry point and reads health, time and the last fix from
a running RelayService. Results are plain dicts; errors are reported in the
``{"error": ..., "error_code": ...}`` form understood by
``result_to_response`` and never raised across the HTTP boundary.
"""

from typing import Any, Dict, Optional

from nmea_relay.core.logging_utils import get_module_logger
from nmea_relay.relay.errors import RelayError
from nmea_relay.relay.ntp_responder import ntp_seconds
from nmea_relay.relay.parsers import SentenceDecoder
from nmea_relay.relay.service import RelayService


logger = get_module_logger("APIController")


class RelayApiController:
    """
    Controller for the relay REST API.

    The decode entry point works without a service, so the API can be
    served for decoding alone.
    """

    def __init__(
        self,
        service: Optional[RelayService] = None,
        decoder: Optional[SentenceDecoder] = None,
    ):
        self.service = service
        if decoder is None:
            decoder = service.decoder if service is not None else SentenceDecoder()
        self.decoder = decoder

    def decode_sentence(self, raw: str) -> Dict[str, Any]:
        """Decode one raw sentence into a key/value document.

        Returns:
            The record document, ``{}`` for well-formed sentences that are
            not decoded, or an error result.
        """
        sentence = raw.strip() if isinstance(raw, str) else ""
        if not sentence:
            return {"error": "Sentence must be a non-empty string", "error_code": "VALIDATION_ERROR"}

        try:
            return self.decoder.decode_document(sentence)
        except RelayError as exc:
            logger.debug("Decode rejected %r: %s", sentence, exc)
            return {"error": str(exc), "error_code": exc.code}

    async def health_check(self) -> Dict[str, Any]:
        if self.service is None:
            return {"status": "decoder_only"}
        return self.service.health()

    async def get_time(self) -> Dict[str, Any]:
        """Current satellite-derived time as served over NTP."""
        if self.service is None:
            return {"utc": None, "age_seconds": None, "ntp_seconds": 0}
        current = self.service.tracker.current_time()
        seconds, _ = ntp_seconds(current)
        return {
            "utc": current.isoformat() if current else None,
            "age_seconds": self.service.tracker.age_seconds(),
            "ntp_seconds": seconds,
        }

    async def get_fix(self) -> Optional[Dict[str, Any]]:
        """Last decoded GGA fix, or None before the first one."""
        if self.service is None or self.service.last_fix is None:
            return None
        return self.service.last_fix.to_dict()


__all__ = ["RelayApiController"]
