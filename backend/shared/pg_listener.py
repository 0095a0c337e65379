"""PostgreSQL LISTEN/NOTIFY subscription with auto-reconnect."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


async def _close_listener(
    pool: asyncpg.Pool,
    connection: asyncpg.Connection,
    channel: str,
    handler: Callable[..., Coroutine[Any, Any, None]],
    *,
    terminate: bool = False,
) -> None:
    """Detach the listener and give the connection back (or kill it) without raising."""
    try:
        await connection.remove_listener(channel, handler)
    except Exception as e:
        logger.debug(f"remove_listener('{channel}') failed: {e}")
    if connection.is_closed():
        return
    if not terminate:
        try:
            await pool.release(connection)
            return
        except Exception as e:
            logger.debug(f"Releasing LISTEN connection failed: {e}")
    connection.terminate()


async def pg_listen(
    pool: asyncpg.Pool,
    channel: str,
    handler: Callable[..., Coroutine[Any, Any, None]],
    *,
    keepalive_interval: int = 30,
    reconnect_delay: int = 10,
) -> None:
    """Listen on a NOTIFY channel until cancelled.

    ``handler(connection, pid, channel, payload)`` is invoked for every
    notification. A ``SELECT 1`` every ``keepalive_interval`` seconds keeps
    Supavisor from dropping the idle LISTEN connection; any failure tears the
    connection down and reconnects after ``reconnect_delay`` seconds.
    """
    while True:
        connection: asyncpg.Connection | None = None
        try:
            connection = await pool.acquire()
            await connection.add_listener(channel, handler)
            logger.info(f"LISTEN active on '{channel}'")
            while True:
                await asyncio.sleep(keepalive_interval)
                await connection.execute("SELECT 1")
        except asyncio.CancelledError:
            logger.info(f"LISTEN '{channel}' shutting down")
            if connection is not None:
                await _close_listener(pool, connection, channel, handler)
            raise
        except Exception as e:
            logger.warning(
                f"LISTEN '{channel}' failed: {type(e).__name__}: {e}, "
                f"reconnecting in {reconnect_delay}s"
            )
            if connection is not None:
                await _close_listener(pool, connection, channel, handler, terminate=True)
            await asyncio.sleep(reconnect_delay)
