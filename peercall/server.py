"""
Signaling coordinator server.
Wires the session registry, mailbox exchange and idle sweeper into an aiohttp app.
"""
import asyncio
from typing import Optional

from aiohttp import web

from .core.config import ServerConfig
from .core.logging import setup_logging, debug_log
from .services import RoomSweeper
from .signaling.exchange import MailboxExchange
from .signaling.registry import SessionRegistry
from .signaling.routes import setup_routes, error_middleware, cors_middleware_factory


class PeerCallServer:
    """Owns the coordinator's in-memory state and background services."""

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()

        self.registry = SessionRegistry(
            room_idle_timeout=self.config.room_idle_timeout,
            peer_idle_timeout=self.config.peer_idle_timeout
        )
        self.exchange = MailboxExchange(self.registry)
        self.sweeper = RoomSweeper(self.registry, self.config.sweep_interval)

        debug_log(f"🚀 [Server] Signaling server initialized", {"config": str(self.config)})

    async def start(self):
        """Start the server services."""
        await self.sweeper.start()
        debug_log(f"🚀 [Server] Server services started")

    def get_server_status(self) -> dict:
        """Get comprehensive server status."""
        return {
            'server_type': 'signaling',
            'registry': self.registry.get_status(),
            'exchange': self.exchange.get_status(),
            'sweeper': self.sweeper.get_status()
        }

    async def cleanup(self):
        """Clean up server resources."""
        debug_log(f"🧹 [Server] Cleaning up server")
        await self.sweeper.cleanup()
        debug_log(f"🧹 [Server] Server cleanup completed")


async def _on_startup(app: web.Application):
    await app['server'].start()


async def _on_cleanup(app: web.Application):
    await app['server'].cleanup()


def create_app(config: Optional[ServerConfig] = None, server: Optional[PeerCallServer] = None) -> web.Application:
    """Build the aiohttp application for the coordinator."""
    server = server or PeerCallServer(config)

    app = web.Application(middlewares=[
        cors_middleware_factory(server.config.cors_origins),
        error_middleware
    ])
    app['server'] = server

    setup_routes(app)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


async def main(config: Optional[ServerConfig] = None):
    """Main server function."""
    config = config or ServerConfig()
    setup_logging(level=config.log_level, log_file="peercall_server.log")
    debug_log(f"🚀 [Main] Starting signaling server")

    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, config.host, config.port)
        debug_log(f"🌐 [Main] Starting HTTP server on {config.host}:{config.port}")
        await site.start()

        debug_log(f"✅ [Main] Signaling server started successfully")

        # Run forever
        await asyncio.Future()
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    asyncio.run(main())
