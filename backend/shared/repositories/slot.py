"""Repository for the slots table."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Protocol

import asyncpg

from shared.exceptions import (
    AlreadyHasActiveSlot,
    ConcurrencyConflictError,
    SlotNotFoundError,
)
from shared.models.slot import SEATS, Slot, note_field
from shared.pg_listener import pg_listen
from shared.repositories.base import bounded_connection

logger = logging.getLogger(__name__)

_SLOT_COLUMNS = (
    "id, creator_name, start_time, player1, player2, player3, player4, "
    "player1_comment, player2_comment, player3_comment, player4_comment, "
    "substitute, waiting_queue, status, notification_sent, created_at, version"
)

# Columns the engine may write; everything else is immutable or owned by the scheduler.
_UPDATABLE = frozenset(
    [*SEATS, *(note_field(s) for s in SEATS), "substitute", "waiting_queue", "status", "start_time"]
)

CHANGES_CHANNEL = "slots_changes"

class SlotStore(Protocol):
    """Store contract consumed by the slot service and the reminder scheduler."""

    async def get(self, slot_id: str) -> Slot | None: ...

    async def find(
        self,
        *,
        status: str | None = None,
        creator: str | None = None,
        start_from: datetime | None = None,
        start_until: datetime | None = None,
        notification_sent: bool | None = None,
    ) -> list[Slot]: ...

    async def insert(self, slot: Slot) -> Slot: ...

    async def update_fields(
        self, slot_id: str, fields: dict[str, Any], expected_version: int
    ) -> Slot: ...

    async def mark_reminder_sent(self, slot_id: str) -> bool: ...


def _slot_uuid(slot_id: str) -> uuid.UUID | None:
    """Parse a slot id; anything that is not a UUID cannot exist."""
    try:
        return uuid.UUID(str(slot_id))
    except ValueError:
        return None


def _row_to_slot(row: asyncpg.Record) -> Slot:
    data = dict(row)
    data["id"] = str(data["id"])
    data["waiting_queue"] = list(data["waiting_queue"] or [])
    return Slot(**data)


class SlotRepository:
    """Pure SQL operations for slots.

    Every call is bounded by ``timeout`` seconds; connection failures and
    timeouts surface as :class:`TransportError`.
    """

    def __init__(self, pool: asyncpg.Pool, timeout: float = 5.0) -> None:
        self.pool = pool
        self.timeout = timeout

    def _acquire(self):
        return bounded_connection(self.pool, self.timeout, "Slot store")

    async def get(self, slot_id: str) -> Slot | None:
        """Point lookup by id."""
        key = _slot_uuid(slot_id)
        if key is None:
            return None
        async with self._acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_SLOT_COLUMNS} FROM slots WHERE id = $1",
                key,
                timeout=self.timeout,
            )
            if not row:
                return None
            return _row_to_slot(row)

    async def find(
        self,
        *,
        status: str | None = None,
        creator: str | None = None,
        start_from: datetime | None = None,
        start_until: datetime | None = None,
        notification_sent: bool | None = None,
    ) -> list[Slot]:
        """Filtered range query ordered by start_time ASC. Bounds are inclusive."""
        clauses: list[str] = []
        params: list[Any] = []

        def add(clause: str, value: Any) -> None:
            params.append(value)
            clauses.append(clause.format(f"${len(params)}"))

        if status is not None:
            add("status = {}", status)
        if creator is not None:
            add("lower(creator_name) = lower({})", creator)
        if start_from is not None:
            add("start_time >= {}", start_from)
        if start_until is not None:
            add("start_time <= {}", start_until)
        if notification_sent is not None:
            add("notification_sent = {}", notification_sent)

        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        async with self._acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_SLOT_COLUMNS} FROM slots {where}ORDER BY start_time ASC",
                *params,
                timeout=self.timeout,
            )
            return [_row_to_slot(row) for row in rows]

    async def insert(self, slot: Slot) -> Slot:
        """Insert a new slot. Raises AlreadyHasActiveSlot on the one-active-slot index."""
        async with self._acquire() as conn:
            try:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO slots (
                        creator_name, start_time, player1, player2, player3, player4,
                        substitute, waiting_queue, status, notification_sent
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    RETURNING {_SLOT_COLUMNS}
                    """,
                    slot.creator_name,
                    slot.start_time,
                    slot.player1,
                    slot.player2,
                    slot.player3,
                    slot.player4,
                    slot.substitute,
                    slot.waiting_queue,
                    slot.status,
                    slot.notification_sent,
                    timeout=self.timeout,
                )
            except asyncpg.UniqueViolationError:
                raise AlreadyHasActiveSlot() from None
            return _row_to_slot(row)

    async def update_fields(
        self, slot_id: str, fields: dict[str, Any], expected_version: int
    ) -> Slot:
        """Partial update guarded by ``version``.

        Succeeds only if the row still carries ``expected_version``; the
        version is bumped on success. Raises ConcurrencyConflictError when the
        row changed since it was read, SlotNotFoundError when it is gone.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        if not fields:
            raise ValueError("No fields to update")
        key = _slot_uuid(slot_id)
        if key is None:
            raise SlotNotFoundError()

        columns = list(fields)
        assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(columns, start=3))
        async with self._acquire() as conn:
            try:
                row = await conn.fetchrow(
                    f"UPDATE slots SET {assignments}, version = version + 1 "
                    f"WHERE id = $1 AND version = $2 "
                    f"RETURNING {_SLOT_COLUMNS}",
                    key,
                    expected_version,
                    *(fields[c] for c in columns),
                    timeout=self.timeout,
                )
            except asyncpg.UniqueViolationError:
                raise AlreadyHasActiveSlot() from None
            if row:
                return _row_to_slot(row)

            exists = await conn.fetchval(
                "SELECT 1 FROM slots WHERE id = $1", key, timeout=self.timeout
            )
            if not exists:
                raise SlotNotFoundError()
            raise ConcurrencyConflictError()

    async def mark_reminder_sent(self, slot_id: str) -> bool:
        """Set notification_sent once. Returns False if it was already set."""
        key = _slot_uuid(slot_id)
        if key is None:
            return False
        async with self._acquire() as conn:
            result = await conn.execute(
                "UPDATE slots SET notification_sent = TRUE "
                "WHERE id = $1 AND notification_sent = FALSE",
                key,
                timeout=self.timeout,
            )
            return result == "UPDATE 1"

    async def listen_changes(
        self, handler: Callable[[str, str], Awaitable[None]]
    ) -> None:
        """Subscribe to row changes. Runs until cancelled.

        ``handler(op, slot_id)`` receives ``INSERT`` / ``UPDATE`` and the id.
        """

        async def _on_notify(
            connection: asyncpg.Connection, pid: int, channel: str, payload: str
        ) -> None:
            try:
                data = json.loads(payload)
                await handler(str(data["op"]), str(data["id"]))
            except Exception as e:
                logger.error(f"Error handling slot change {payload!r}: {e}")

        await pg_listen(self.pool, CHANGES_CHANNEL, _on_notify)
