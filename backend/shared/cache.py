"""In-process TTL cache with a last-known-good fallback.

Backed by cachetools.TTLCache; each process keeps its own instances. When
the database cannot be reached, cached reads fall back to the most recent
value that was ever loaded, so slot actions keep working with slightly old
access rules instead of failing outright.
"""

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """Fresh TTL tier plus a bounded LRU of last-known-good values."""

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._last_good: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def get(self, key: str) -> Any:
        """Fresh value or ``_MISSING``."""
        return self._fresh.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._last_good[key] = value
        self._last_good.move_to_end(key)
        while len(self._last_good) > self._maxsize:
            evicted, _ = self._last_good.popitem(last=False)
            self._locks.pop(evicted, None)

    def invalidate(self, key: str) -> None:
        """Drop the fresh value; the last-known-good copy stays."""
        self._fresh.pop(key, None)

    def clear(self) -> None:
        """Forget everything, including last-known-good values."""
        self._fresh.clear()
        self._last_good.clear()
        self._locks.clear()

    def get_stale(self, key: str) -> Any:
        """Last-known-good value or ``_MISSING``."""
        return self._last_good.get(key, _MISSING)

    @property
    def size(self) -> int:
        return len(self._fresh)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 2,
    retry_delay: float = 0.5,
):
    """Cache an async loader's result in ``cache`` under ``key_func(*args, **kwargs)``.

    Concurrent misses on the same key share one load. A failing load is
    retried ``retry`` times; if it still fails, the last-known-good value is
    returned when there is one, otherwise the error propagates.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_func(*args, **kwargs)
            value = cache.get(key)
            if value is not _MISSING:
                return value

            async with cache.lock_for(key):
                value = cache.get(key)
                if value is not _MISSING:
                    return value

                last_exc: Exception | None = None
                for attempt in range(1, retry + 1):
                    try:
                        value = await func(*args, **kwargs)
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            logger.warning(
                                "Load attempt %d/%d failed for %s: %s",
                                attempt,
                                retry,
                                key,
                                type(exc).__name__,
                            )
                            await asyncio.sleep(retry_delay * attempt)
                        continue
                    cache.set(key, value)
                    return value

                stale = cache.get_stale(key)
                if stale is not _MISSING:
                    logger.warning("Serving stale %s (%s)", key, type(last_exc).__name__)
                    return stale
                raise last_exc  # type: ignore[misc]

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
