"""
ATC Relay - streaming audio relay
Forwards live upstream audio streams to browser players.
"""

import asyncio
import signal
from collections.abc import AsyncIterator

import aiohttp_cors
import uvloop
from aiohttp import web

from atc_relay.relay_service.handlers import RequestHandlers
from atc_relay.relay_service.keys import REQUEST_ID_HEADER, SETTINGS_KEY, UPSTREAM_KEY
from atc_relay.relay_service.middleware import request_context_middleware
from atc_relay.relay_service.upstream.client import cleanup_upstream_session, setup_upstream_session
from atc_relay.relay_service.upstream.http import HTTPStreamUpstream
from atc_relay.shared.config import Settings, get_settings
from atc_relay.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


class RelayServer:
    """Main server class wiring the relay routes, CORS and upstream session."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.handlers = RequestHandlers(self.settings)
        self._stop_event = asyncio.Event()

    def setup_routes(self, app: web.Application) -> None:
        """Configure application routes."""
        app.router.add_get("/proxy/{stream_id}", self.handlers.handle_proxy, allow_head=False)
        app.router.add_get("/status", self.handlers.handle_status)

    async def upstream_context(self, app: web.Application) -> AsyncIterator[None]:
        """Manage the upstream session lifecycle (startup/shutdown)."""
        session = await setup_upstream_session(self.settings)
        app[UPSTREAM_KEY] = HTTPStreamUpstream(
            session,
            self.settings.upstream_base_url,
            connect_timeout=self.settings.connect_timeout,
            chunk_size=self.settings.chunk_size,
        )

        yield

        await cleanup_upstream_session(session)

    def create_app(self) -> web.Application:
        """Create and configure the relay application."""
        app = web.Application(middlewares=[request_context_middleware])
        app[SETTINGS_KEY] = self.settings
        app.cleanup_ctx.append(self.upstream_context)

        # Any origin may play the stream; no cookies are involved
        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=False,
                    expose_headers=(REQUEST_ID_HEADER,),
                    allow_headers="*",
                    allow_methods=["GET"],
                )
            },
        )

        self.setup_routes(app)

        for route in list(app.router.routes()):
            cors.add(route)

        return app

    async def start(self) -> None:
        """Start the relay and serve until SIGINT/SIGTERM."""
        app = self.create_app()

        runner = web.AppRunner(
            app,
            handler_cancellation=True,
            shutdown_timeout=self.settings.shutdown_timeout,
        )
        await runner.setup()

        site = web.TCPSite(runner, self.settings.host, self.settings.port)
        await site.start()

        logger.info(f"Proxy server running on http://{self.settings.host}:{self.settings.port}")
        logger.info(f"Relaying streams from {self.settings.upstream_base_url}")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop)

        try:
            await self._stop_event.wait()
            logger.info("Shutting down...")
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await runner.cleanup()
            logger.info("Relay stopped")

    def stop(self) -> None:
        """Ask a running relay to shut down; in-flight streams are cancelled after shutdown_timeout."""
        self._stop_event.set()


def create_app(settings: Settings | None = None) -> web.Application:
    """Build the relay application without starting a listener."""
    return RelayServer(settings).create_app()


def main() -> None:
    """Entry point for the server."""
    settings = get_settings()
    setup_logging(settings.log_level)

    server = RelayServer(settings)

    try:
        uvloop.run(server.start())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":
    main()
