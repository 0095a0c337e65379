import asyncio
import dataclasses
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from shared.exceptions import (
    AlreadyHasActiveSlot,
    ConcurrencyConflictError,
    SlotNotFoundError,
    TransportError,
)
from shared.models.slot import ACTIVE, Slot

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def copy_slot(slot: Slot) -> Slot:
    return dataclasses.replace(slot, waiting_queue=list(slot.waiting_queue))


class FakeSlotStore:
    """In-memory SlotStore with the same version guard as the SQL repository."""

    def __init__(self):
        self.slots: dict[str, Slot] = {}
        self._next_id = 1
        self.update_calls = 0
        self.mark_calls: list[str] = []
        # Failure switches
        self.fail_find = False
        self.fail_mark = False
        self.forced_conflicts = 0

    def add(self, slot: Slot) -> Slot:
        if slot.id is None:
            slot = dataclasses.replace(slot, id=str(self._next_id))
            self._next_id += 1
        self.slots[slot.id] = copy_slot(slot)
        return copy_slot(slot)

    async def get(self, slot_id: str) -> Slot | None:
        await asyncio.sleep(0)
        slot = self.slots.get(slot_id)
        return copy_slot(slot) if slot else None

    async def find(
        self,
        *,
        status=None,
        creator=None,
        start_from=None,
        start_until=None,
        notification_sent=None,
    ) -> list[Slot]:
        await asyncio.sleep(0)
        if self.fail_find:
            raise TransportError("store unreachable")
        result = []
        for slot in self.slots.values():
            if status is not None and slot.status != status:
                continue
            if creator is not None and slot.creator_name.lower() != creator.lower():
                continue
            if start_from is not None and slot.start_time < start_from:
                continue
            if start_until is not None and slot.start_time > start_until:
                continue
            if notification_sent is not None and slot.notification_sent != notification_sent:
                continue
            result.append(copy_slot(slot))
        return sorted(result, key=lambda s: s.start_time)

    async def insert(self, slot: Slot) -> Slot:
        await asyncio.sleep(0)
        for existing in self.slots.values():
            if existing.status == ACTIVE and existing.creator_name == slot.creator_name:
                raise AlreadyHasActiveSlot()
        return self.add(slot)

    async def update_fields(
        self, slot_id: str, fields: dict[str, Any], expected_version: int
    ) -> Slot:
        await asyncio.sleep(0)
        self.update_calls += 1
        current = self.slots.get(slot_id)
        if current is None:
            raise SlotNotFoundError()
        if self.forced_conflicts > 0:
            self.forced_conflicts -= 1
            raise ConcurrencyConflictError()
        if current.version != expected_version:
            raise ConcurrencyConflictError()
        updated = dataclasses.replace(current, **fields, version=current.version + 1)
        self.slots[slot_id] = copy_slot(updated)
        return copy_slot(updated)

    async def mark_reminder_sent(self, slot_id: str) -> bool:
        await asyncio.sleep(0)
        self.mark_calls.append(slot_id)
        if self.fail_mark:
            raise TransportError("store unreachable")
        slot = self.slots.get(slot_id)
        if slot is None or slot.notification_sent:
            return False
        slot.notification_sent = True
        return True


class FakeChannel:
    """Records deliveries; ``fail_when`` decides per message whether delivery fails."""

    def __init__(self, fail_when=None, raise_error: Exception | None = None):
        self.delivered: list[tuple[str, str]] = []
        self.attempts = 0
        self.fail_when = fail_when
        self.raise_error = raise_error

    async def deliver(self, audience: str, text: str) -> bool:
        await asyncio.sleep(0)
        self.attempts += 1
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_when is not None and self.fail_when(text):
            return False
        self.delivered.append((audience, text))
        return True


@pytest.fixture
def store():
    return FakeSlotStore()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def make_slot():
    def _make(**overrides) -> Slot:
        values = {
            "id": "s1",
            "creator_name": "alice",
            "start_time": NOW + timedelta(hours=1),
            "player1": "alice",
            "created_at": NOW,
        }
        values.update(overrides)
        return Slot(**values)

    return _make


@pytest.fixture
def now():
    return NOW
