"""HTTP server: health checks and the new-slot webhook"""

import hmac
import json
import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web

if TYPE_CHECKING:
    from discord.ext.commands import Bot

logger = logging.getLogger(__name__)


class BotHttpServer:
    """aiohttp server running inside the bot's event loop"""

    def __init__(
        self,
        bot: "Bot",
        host: str = "0.0.0.0",
        port: int = 8080,
        webhook_secret: str = "",
    ) -> None:
        self.bot: Any = bot
        self.host = host
        self.port = port
        self.webhook_secret = webhook_secret
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time = time.time()
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)
        self.app.router.add_post("/webhook/new-slot", self.handle_new_slot)

    def _scheduler(self):
        cog = self.bot.get_cog("ReminderCog")
        return getattr(cog, "scheduler", None)

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.json_response({"service": "slotboard-bot", "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness: always 200"""
        ready = self.bot.is_ready()
        return web.json_response({"status": "healthy" if ready else "starting", "ready": ready})

    async def handle_status(self, request: web.Request) -> web.Response:
        ready = self.bot.is_ready()
        return web.json_response(
            {
                "service": "slotboard-bot",
                "bot_ready": ready,
                "scheduler_ready": self._scheduler() is not None,
                "latency_ms": round(self.bot.latency * 1000, 2) if ready else None,
                "uptime_seconds": int(time.time() - self._start_time),
            }
        )

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def handle_new_slot(self, request: web.Request) -> web.Response:
        """Announce a freshly created slot: ``{"slot_id": "..."}``"""
        if self.webhook_secret:
            supplied = request.headers.get("X-Webhook-Secret", "")
            if not hmac.compare_digest(supplied, self.webhook_secret):
                return web.json_response({"error": "Unauthorized"}, status=401)

        try:
            data = await request.json()
        except json.JSONDecodeError:
            return web.json_response({"error": "Invalid JSON"}, status=400)

        slot_id = data.get("slot_id") if isinstance(data, dict) else None
        if not slot_id:
            return web.json_response({"error": "slot_id is required"}, status=400)

        scheduler = self._scheduler()
        if scheduler is None:
            return web.json_response({"error": "Scheduler not ready"}, status=503)

        success = await scheduler.announce_created(str(slot_id))
        return web.json_response({"success": success})

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("HTTP server stopped")
