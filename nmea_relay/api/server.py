"""
API Server - aiohttp-based REST server for the NMEA relay.

Runs on the relay's event loop and exposes the decode entry point plus
read-only health, time and fix endpoints.
"""

from typing import Optional

from aiohttp import web

from nmea_relay.core.logging_utils import get_module_logger

from .controller import RelayApiController
from .middleware import error_handling_middleware, localhost_only_middleware
from .routes import setup_relay_routes


logger = get_module_logger("APIServer")


def create_app(controller: RelayApiController, localhost_only: bool = True) -> web.Application:
    """Create and configure the aiohttp application."""
    middlewares = [error_handling_middleware]
    if localhost_only:
        middlewares.insert(0, localhost_only_middleware)

    app = web.Application(middlewares=middlewares)
    app["controller"] = controller
    setup_relay_routes(app)
    return app


class APIServer:
    """REST API server for the relay."""

    def __init__(
        self,
        controller: RelayApiController,
        host: str = "127.0.0.1",
        port: int = 8080,
        localhost_only: bool = True,
    ):
        """
        Initialize the API server.

        Args:
            controller: RelayApiController wrapping the relay service
            host: Host to bind to (default: localhost only)
            port: Port to bind to (default: 8080)
            localhost_only: If True, reject requests from non-localhost
        """
        self.controller = controller
        self.host = host
        self.port = port
        self.localhost_only = localhost_only

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

    async def start(self) -> None:
        """Start the API server (non-blocking)."""
        if self._running:
            logger.warning("API server already running")
            return

        self._app = create_app(self.controller, self.localhost_only)
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info("API server started on http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop the API server gracefully."""
        if not self._running:
            return

        logger.info("Stopping API server...")

        if self._site:
            await self._site.stop()
            self._site = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._app = None
        self._running = False

        logger.info("API server stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"
