"""HTTP health check server"""

import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web

if TYPE_CHECKING:
    from discord.ext.commands import Bot

logger = logging.getLogger("birthday_bot.health_server")


class HealthCheckServer:
    """HTTP health check server"""

    def __init__(
        self, bot: "Bot | None" = None, host: str = "0.0.0.0", port: int = 8080
    ) -> None:
        self.bot: Any = bot
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)

    async def handle_root(self, request: web.Request) -> web.Response:
        """Root endpoint for uptime pingers"""
        return web.Response(text="Birthday Bot is running!")

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness check, always 200"""
        ready = self.bot is not None and self.bot.is_ready()
        return web.json_response(
            {
                "status": "healthy" if ready else "starting",
                "ready": ready,
                "uptime_seconds": int(time.time() - self._start_time),
            }
        )

    async def start(self) -> None:
        """Start health check server"""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()
            logger.info(f"Health server started on {self.host}:{self.port}")
        except Exception as e:
            logger.exception(f"Failed to start health server: {e}")
            raise

    async def stop(self) -> None:
        """Stop health check server"""
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Health server stopped")
            except Exception as e:
                logger.exception(f"Error stopping health server: {e}")
            self.runner = None
