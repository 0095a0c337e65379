"""Connection handling shared by the repositories."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from shared.exceptions import TransportError

TRANSPORT_ERRORS = (
    OSError,
    TimeoutError,
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.QueryCanceledError,
)


@asynccontextmanager
async def bounded_connection(
    pool: asyncpg.Pool, timeout: float, store: str = "Store"
) -> AsyncIterator[asyncpg.Connection]:
    """Acquire a connection; the whole block must finish within ``timeout`` seconds.

    Connection failures and timeouts surface as :class:`TransportError`.
    """
    try:
        async with asyncio.timeout(timeout):
            async with pool.acquire(timeout=timeout) as conn:
                yield conn
    except TRANSPORT_ERRORS as e:
        raise TransportError(f"{store} unavailable: {type(e).__name__}") from e
