"""Repository for the slot_access_rules table."""

from __future__ import annotations

import logging

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.models.access_rule import AccessRule
from shared.repositories.base import bounded_connection

logger = logging.getLogger(__name__)

_COLUMNS = "id, identity, rule, created_at"

# Rules change rarely; every mutating slot call reads them.
_rules_cache = AsyncTTLCache(maxsize=4, ttl=300)


class AccessRuleRepository:
    """Pure SQL operations for slot_access_rules, bounded by ``timeout`` seconds per call."""

    def __init__(self, pool: asyncpg.Pool, timeout: float = 5.0) -> None:
        self.pool = pool
        self.timeout = timeout

    @cached(cache=_rules_cache, key_func=lambda self: "access_rules")
    async def list_rules(self) -> list[AccessRule]:
        async with bounded_connection(self.pool, self.timeout, "Access rule store") as conn:
            rows = await conn.fetch(f"SELECT {_COLUMNS} FROM slot_access_rules ORDER BY id", timeout=self.timeout)
            return [AccessRule(**dict(row)) for row in rows]

    async def add_rule(self, identity: str, rule: str) -> AccessRule:
        """Add or replace the rule for an identity."""
        if rule not in ("block", "allow"):
            raise ValueError(f"Unknown access rule: {rule}")
        async with bounded_connection(self.pool, self.timeout, "Access rule store") as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO slot_access_rules (identity, rule)
                VALUES (lower($1), $2)
                ON CONFLICT (identity) DO UPDATE SET rule = EXCLUDED.rule
                RETURNING {_COLUMNS}
                """,
                identity,
                rule,
                timeout=self.timeout,
            )
        _rules_cache.invalidate("access_rules")
        logger.info(f"Access rule set: {identity} -> {rule}")
        return AccessRule(**dict(row))

    async def remove_rule(self, identity: str) -> bool:
        async with bounded_connection(self.pool, self.timeout, "Access rule store") as conn:
            result = await conn.execute(
                "DELETE FROM slot_access_rules WHERE identity = lower($1)", identity, timeout=self.timeout
            )
        _rules_cache.invalidate("access_rules")
        return result == "DELETE 1"
