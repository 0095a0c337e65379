"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from api.core.config import get_settings
from api.core.database import get_database_manager, init_database_manager
from api.routers import auth_router, slots_router
from shared.database import DatabaseManager
from shared.logging_setup import setup_logging

logger = logging.getLogger(__name__)

_start_time: float = 0.0
_background_tasks: list[asyncio.Task] = []


async def _heartbeat(interval: int = 300) -> None:
    """Periodic heartbeat: log uptime and DB status"""
    while True:
        await asyncio.sleep(interval)
        uptime = int(time.time() - _start_time)
        db_ok = await get_database_manager().check_health()
        logger.info(f"Heartbeat: uptime={uptime}s, db={db_ok}")


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Keep retrying the DB connection after a failed startup."""
    delay = 5
    max_delay = 60
    while not db_manager.is_connected:
        await asyncio.sleep(delay)
        try:
            await db_manager.connect()
            logger.info("Database connected (background retry)")
            return
        except Exception as e:
            delay = min(delay * 2, max_delay)
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, next retry in {delay}s"
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time
    _start_time = time.time()
    settings = get_settings()

    logger.info("Starting slot board API server")
    logger.info(f"Environment: {settings.environment} | Timezone: {settings.slot_timezone}")

    # Wait up to 30s for the pool so early requests don't hit a closed pool;
    # after that keep serving (503 on DB routes) and retry in the background.
    db_manager = init_database_manager(settings.database_url)
    try:
        await asyncio.wait_for(db_manager.connect(), timeout=30)
    except Exception as e:
        logger.error(
            f"DB connection failed during startup: {type(e).__name__}: {e}, "
            "retrying in background"
        )
        _background_tasks.append(asyncio.create_task(_db_retry_loop(db_manager)))

    if settings.enable_keep_alive:
        _background_tasks.append(asyncio.create_task(_heartbeat(settings.keep_alive_interval)))
        logger.info(f"Heartbeat started (interval={settings.keep_alive_interval}s)")

    yield

    logger.info("Shutting down slot board API server")
    for task in _background_tasks:
        task.cancel()
    _background_tasks.clear()
    await db_manager.disconnect()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()
    setup_logging(settings.log_level, quiet=("uvicorn.access",))
    logger.info(f"Logging: {settings.log_level} | Env: {settings.environment}")

    app = FastAPI(
        title="Slot Board API",
        description="Game session slot booking board",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router)
    app.include_router(slots_router.router)

    @app.get("/")
    async def root():
        return {"service": "slotboard-api", "status": "running"}

    @app.get("/health")
    async def health():
        """Liveness check (no DB dependency)"""
        return {"status": "healthy", "uptime_seconds": int(time.time() - _start_time)}

    @app.get("/status")
    async def status():
        """Readiness: includes an actual DB round trip"""
        try:
            db_ok = await get_database_manager().check_health()
        except RuntimeError:
            db_ok = False
        return {
            "service": "slotboard-api",
            "version": "1.0.0",
            "uptime_seconds": int(time.time() - _start_time),
            "db_connected": db_ok,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")
    return app
