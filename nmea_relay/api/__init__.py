"""REST API for the NMEA relay."""

from .controller import RelayApiController
from .server import APIServer, create_app

__all__ = ["APIServer", "RelayApiController", "create_app"]
