"""Repository for the user_credentials table."""

from __future__ import annotations

import asyncpg

from shared.models.credential import UserCredential
from shared.repositories.base import bounded_connection

_COLUMNS = "id, username, password_hash, created_at"


class CredentialRepository:
    """Pure SQL operations for user_credentials. Usernames are stored lower-cased.

    Calls are bounded by ``timeout`` seconds and fail with TransportError.
    """

    def __init__(self, pool: asyncpg.Pool, timeout: float = 5.0) -> None:
        self.pool = pool
        self.timeout = timeout

    async def get_by_username(self, username: str) -> UserCredential | None:
        async with bounded_connection(self.pool, self.timeout, "Credential store") as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM user_credentials WHERE username = lower($1)",
                username,
                timeout=self.timeout,
            )
            if not row:
                return None
            return UserCredential(**dict(row))

    async def create(self, username: str, password_hash: str) -> UserCredential | None:
        """Insert a credential. Returns None if the username is taken."""
        async with bounded_connection(self.pool, self.timeout, "Credential store") as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO user_credentials (username, password_hash)
                VALUES (lower($1), $2)
                ON CONFLICT (username) DO NOTHING
                RETURNING {_COLUMNS}
                """,
                username,
                password_hash,
                timeout=self.timeout,
            )
            if not row:
                return None
            return UserCredential(**dict(row))

    async def update_hash(self, username: str, password_hash: str) -> bool:
        """Replace a stored hash (used to upgrade old hashes on login)."""
        async with bounded_connection(self.pool, self.timeout, "Credential store") as conn:
            result = await conn.execute(
                "UPDATE user_credentials SET password_hash = $2 WHERE username = lower($1)",
                username,
                password_hash,
                timeout=self.timeout,
            )
            return result == "UPDATE 1"
