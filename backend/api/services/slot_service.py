"""Slot service: business-logic layer between the routers and the slot store.

Every mutation follows the same cycle: read the slot, let the engine decide,
write the change conditioned on the version that was read. When another
writer got there first the cycle starts over with fresh state, so the loser
of a race is re-validated (and typically rejected) instead of overwriting.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, time, tzinfo

from shared.exceptions import ConcurrencyConflictError, InvalidStartTime, SlotNotFoundError
from shared.models.slot import ACTIVE, Slot
from shared.repositories.slot import SlotStore
from shared.slot_engine import (
    SlotChange,
    SlotEngine,
    normalize_identity,
    parse_time_of_day,
    start_of_day,
    visible_slots,
)

logger = logging.getLogger(__name__)


class SlotService:
    """API-facing slot operations."""

    def __init__(
        self,
        store: SlotStore,
        engine: SlotEngine,
        *,
        tz: tzinfo = UTC,
        retries: int = 3,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.tz = tz
        self.retries = retries
        self._clock = clock or (lambda: datetime.now(UTC))

    # --- reads ---

    async def list_slots(self) -> list[Slot]:
        """Active slots starting today or later, soonest first."""
        now = self._clock()
        slots = await self.store.find(status=ACTIVE, start_from=start_of_day(now, self.tz))
        return visible_slots(slots, now, self.tz)

    async def get_slot(self, slot_id: str) -> Slot:
        slot = await self.store.get(slot_id)
        if slot is None:
            raise SlotNotFoundError()
        return slot

    # --- creation ---

    async def create_slot(self, identity: str, start_time: str | time) -> Slot:
        creator = normalize_identity(identity)
        clock = parse_time_of_day(start_time)
        now = self._clock()

        active = await self.store.find(status=ACTIVE, creator=creator)
        slot = self.engine.create_slot(creator, clock, now=now, active_slots=active)
        if slot.start_time < now:
            raise InvalidStartTime("Start time has already passed today")

        created = await self.store.insert(slot)
        logger.info(f"{creator} created slot {created.id} at {created.start_time.isoformat()}")
        return created

    # --- guarded mutations ---

    async def _mutate(
        self, slot_id: str, action: Callable[[Slot], SlotChange], label: str
    ) -> Slot:
        for attempt in range(1, self.retries + 1):
            slot = await self.get_slot(slot_id)
            change = action(slot)
            if change.noop:
                return slot
            try:
                updated = await self.store.update_fields(slot_id, change.fields, slot.version)
            except ConcurrencyConflictError:
                logger.info(
                    f"Concurrent update on slot {slot_id} during {label}, "
                    f"retry {attempt}/{self.retries}"
                )
                continue
            logger.info(f"Slot {slot_id}: {label} ({', '.join(change.fields)})")
            return updated

        logger.warning(f"Slot {slot_id}: {label} gave up after {self.retries} conflicts")
        raise ConcurrencyConflictError()

    async def join_slot(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(slot_id, lambda s: self.engine.join_slot(s, actor), "join")

    async def leave_slot(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(slot_id, lambda s: self.engine.leave_slot(s, actor), "leave")

    async def remove_self_as_creator(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(
            slot_id, lambda s: self.engine.remove_self_as_creator(s, actor), "remove-self"
        )

    async def cancel_slot(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(slot_id, lambda s: self.engine.cancel_slot(s, actor), "cancel")

    async def edit_start_time(self, slot_id: str, identity: str, new_time: str | time) -> Slot:
        actor = normalize_identity(identity)
        clock = parse_time_of_day(new_time)
        return await self._mutate(
            slot_id, lambda s: self.engine.edit_start_time(s, actor, clock), "edit-time"
        )

    async def set_position_note(
        self, slot_id: str, identity: str, seat: str | int, text: str | None
    ) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(
            slot_id, lambda s: self.engine.set_position_note(s, actor, seat, text), "note"
        )

    async def join_waiting_queue(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(
            slot_id, lambda s: self.engine.join_waiting_queue(s, actor), "queue-join"
        )

    async def leave_waiting_queue(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(
            slot_id, lambda s: self.engine.leave_waiting_queue(s, actor), "queue-leave"
        )

    async def claim_substitute(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(
            slot_id, lambda s: self.engine.claim_substitute(s, actor), "sub-claim"
        )

    async def release_substitute(self, slot_id: str, identity: str) -> Slot:
        actor = normalize_identity(identity)
        return await self._mutate(
            slot_id, lambda s: self.engine.release_substitute(s, actor), "sub-release"
        )
