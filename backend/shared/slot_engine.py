"""Slot state transitions.

Pure decision logic over a single :class:`~shared.models.slot.Slot`. Nothing
in this module touches the database or the network: every operation either
returns a :class:`SlotChange` describing the columns to write, or raises one
of the errors from :mod:`shared.exceptions`.

Identities are compared case-insensitively and stored normalized
(trimmed, lower-cased).
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta, tzinfo
from typing import Any

from shared.exceptions import (
    AlreadyHasActiveSlot,
    AlreadyInSlot,
    AlreadyQueued,
    CreatorCannotLeave,
    FeatureDisabled,
    IdentityBlocked,
    InvalidIdentity,
    InvalidSeat,
    InvalidStartTime,
    NotCreator,
    NotSeatOccupant,
    SlotFull,
    SlotNotActive,
    SubstituteTaken,
)
from shared.models.access_rule import AccessRule
from shared.models.slot import ACTIVE, CANCELLED, JOINABLE_SEATS, SEATS, Slot, note_field

REMINDER_WINDOW = timedelta(minutes=15)

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


# ============================================
# Helpers
# ============================================


def normalize_identity(identity: str | None) -> str:
    """Trim and lower-case an identity. Raises InvalidIdentity when empty."""
    value = (identity or "").strip().lower()
    if not value:
        raise InvalidIdentity()
    return value


def _same(a: str | None, b: str) -> bool:
    return bool(a) and a.strip().lower() == b


def parse_time_of_day(value: str | time) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into a :class:`datetime.time`."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    match = _TIME_RE.match(value or "")
    if not match:
        raise InvalidStartTime()
    hour, minute, second = (int(g) if g else 0 for g in match.groups())
    try:
        return time(hour, minute, second)
    except ValueError:
        raise InvalidStartTime() from None


def start_of_day(now: datetime, tz: tzinfo) -> datetime:
    """Midnight of ``now``'s calendar day in ``tz``."""
    local = now.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_seat(seat: str | int) -> str:
    """Accept a seat name (``player3``) or a 1-based index (``3``)."""
    if isinstance(seat, int) and not isinstance(seat, bool):
        if 1 <= seat <= len(SEATS):
            return SEATS[seat - 1]
        raise InvalidSeat()
    name = str(seat).strip().lower()
    if name.isdigit():
        return resolve_seat(int(name))
    if name not in SEATS:
        raise InvalidSeat()
    return name


def seat_of(slot: Slot, identity: str) -> str | None:
    """Return the first seat occupied by ``identity`` (already normalized)."""
    for seat in SEATS:
        if _same(getattr(slot, seat), identity):
            return seat
    return None


def occupants(slot: Slot) -> list[tuple[str, str, str]]:
    """``(seat, occupant, note)`` for every occupied seat, in seat order."""
    result = []
    for seat in SEATS:
        occupant = getattr(slot, seat)
        if occupant and occupant.strip():
            result.append((seat, occupant, getattr(slot, note_field(seat)) or ""))
    return result


def in_queue(slot: Slot, identity: str) -> bool:
    return any(_same(entry, identity) for entry in slot.waiting_queue)


def reminder_due(slot: Slot, now: datetime, window: timedelta = REMINDER_WINDOW) -> bool:
    """True when ``slot`` starts within ``window`` of ``now`` and has not been reminded."""
    if slot.status != ACTIVE or slot.notification_sent:
        return False
    return now <= slot.start_time <= now + window


def visible_slots(slots: Iterable[Slot], now: datetime, tz: tzinfo) -> list[Slot]:
    """Listing filter: active slots starting today or later, ordered by start time.

    Expired slots are hidden here rather than purged, so the reminder
    scheduler still sees every row it owes a reminder for.
    """
    cutoff = start_of_day(now, tz)
    return sorted(
        (s for s in slots if s.status == ACTIVE and s.start_time >= cutoff),
        key=lambda s: s.start_time,
    )


# ============================================
# Configuration
# ============================================


@dataclass(frozen=True)
class SlotFeatures:
    """Optional slot capabilities. Everything is on by default."""

    comments: bool = True
    waiting_queue: bool = True
    substitute: bool = True
    # Whether a seated identity may also sit in the waiting queue.
    queue_allows_seated: bool = True


@dataclass(frozen=True)
class AccessPolicy:
    """Deny/allow lists consulted before every mutating operation.

    An empty ``allowed`` set means everyone not blocked is allowed.
    """

    blocked: frozenset[str] = frozenset()
    allowed: frozenset[str] = frozenset()

    @classmethod
    def from_rules(cls, rules: Iterable[AccessRule]) -> AccessPolicy:
        blocked: set[str] = set()
        allowed: set[str] = set()
        for rule in rules:
            name = rule.identity.strip().lower()
            if not name:
                continue
            if rule.rule == "block":
                blocked.add(name)
            elif rule.rule == "allow":
                allowed.add(name)
        return cls(blocked=frozenset(blocked), allowed=frozenset(allowed))

    def check(self, identity: str) -> None:
        if identity in self.blocked:
            raise IdentityBlocked()
        if self.allowed and identity not in self.allowed:
            raise IdentityBlocked()


@dataclass
class SlotChange:
    """Partial update computed by the engine.

    ``fields`` maps column names to new values. An empty mapping is an
    accepted no-op: the caller must not write anything.
    """

    slot: Slot
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def noop(self) -> bool:
        return not self.fields

    def apply(self) -> Slot:
        """Return a copy of the slot with the change applied."""
        if self.noop:
            return self.slot
        updated = dataclasses.replace(self.slot, **self.fields)
        updated.waiting_queue = list(updated.waiting_queue)
        return updated


# ============================================
# Engine
# ============================================


class SlotEngine:
    """Validates slot actions and computes the resulting partial updates."""

    def __init__(
        self,
        features: SlotFeatures | None = None,
        policy: AccessPolicy | None = None,
        tz: tzinfo = UTC,
    ) -> None:
        self.features = features or SlotFeatures()
        self.policy = policy or AccessPolicy()
        self.tz = tz

    def _actor(self, identity: str | None) -> str:
        actor = normalize_identity(identity)
        self.policy.check(actor)
        return actor

    def _require_creator(self, slot: Slot, actor: str) -> None:
        if not _same(slot.creator_name, actor):
            raise NotCreator()

    @staticmethod
    def _require_active(slot: Slot) -> None:
        if slot.status != ACTIVE:
            raise SlotNotActive()

    def _on_slot_day(self, slot: Slot, new_time: time) -> datetime:
        day = slot.start_time.astimezone(self.tz).date()
        return datetime.combine(day, new_time, tzinfo=self.tz)

    # --- creation ---

    def create_slot(
        self,
        creator: str,
        start_time: str | time,
        *,
        now: datetime,
        active_slots: Iterable[Slot] | None = None,
    ) -> Slot:
        """Build a new active slot starting at ``start_time`` on ``now``'s day.

        When ``active_slots`` is supplied, a creator who already owns an
        active slot is rejected. Without it, the one-active-slot rule is left
        to the caller (and the database's unique index).
        """
        actor = self._actor(creator)
        clock = parse_time_of_day(start_time)
        if active_slots is not None:
            for existing in active_slots:
                if existing.status == ACTIVE and _same(existing.creator_name, actor):
                    raise AlreadyHasActiveSlot()

        local_now = now.astimezone(self.tz)
        return Slot(
            id=None,
            creator_name=actor,
            start_time=datetime.combine(local_now.date(), clock, tzinfo=self.tz),
            player1=actor,
            waiting_queue=[],
            status=ACTIVE,
            notification_sent=False,
            created_at=now,
        )

    # --- seats ---

    def join_slot(self, slot: Slot, identity: str) -> SlotChange:
        """Seat ``identity`` in the first empty seat of player2..player4.

        The creator never joins their own slot, even after vacating player1.
        """
        actor = self._actor(identity)
        self._require_active(slot)
        if _same(slot.creator_name, actor) or seat_of(slot, actor) is not None:
            raise AlreadyInSlot()

        seat = next((s for s in JOINABLE_SEATS if not (getattr(slot, s) or "").strip()), None)
        if seat is None:
            raise SlotFull()

        fields: dict[str, Any] = {seat: actor, note_field(seat): ""}
        if _same(slot.substitute, actor):
            fields["substitute"] = ""
        if not self.features.queue_allows_seated and in_queue(slot, actor):
            fields["waiting_queue"] = [e for e in slot.waiting_queue if not _same(e, actor)]
        return SlotChange(slot, fields)

    def leave_slot(self, slot: Slot, identity: str) -> SlotChange:
        """Vacate every joinable seat held by ``identity``. No-op if not seated."""
        actor = self._actor(identity)
        if _same(slot.creator_name, actor):
            raise CreatorCannotLeave()

        fields: dict[str, Any] = {}
        for seat in JOINABLE_SEATS:
            if _same(getattr(slot, seat), actor):
                fields[seat] = ""
                fields[note_field(seat)] = ""
        if fields:
            self._require_active(slot)
        return SlotChange(slot, fields)

    def remove_self_as_creator(self, slot: Slot, identity: str) -> SlotChange:
        """Creator vacates player1. Ownership (``creator_name``) is kept."""
        actor = self._actor(identity)
        self._require_creator(slot, actor)
        if not (slot.player1 or "").strip():
            return SlotChange(slot)
        self._require_active(slot)
        return SlotChange(slot, {"player1": "", "player1_comment": ""})

    def cancel_slot(self, slot: Slot, identity: str) -> SlotChange:
        """Cancel the slot. Cancelling a cancelled slot is accepted as a no-op."""
        actor = self._actor(identity)
        self._require_creator(slot, actor)
        if slot.status == CANCELLED:
            return SlotChange(slot)
        return SlotChange(slot, {"status": CANCELLED})

    def edit_start_time(self, slot: Slot, identity: str, new_time: str | time) -> SlotChange:
        """Move the start time, keeping the slot's calendar day."""
        clock = parse_time_of_day(new_time)
        actor = self._actor(identity)
        self._require_creator(slot, actor)
        self._require_active(slot)
        start = self._on_slot_day(slot, clock)
        if start == slot.start_time:
            return SlotChange(slot)
        return SlotChange(slot, {"start_time": start})

    def set_position_note(
        self, slot: Slot, identity: str, seat: str | int, text: str | None
    ) -> SlotChange:
        """Write the note of ``seat``; only its current occupant may do so."""
        if not self.features.comments:
            raise FeatureDisabled("Seat comments are disabled")
        seat_name = resolve_seat(seat)
        actor = self._actor(identity)
        if not _same(getattr(slot, seat_name), actor):
            raise NotSeatOccupant()
        self._require_active(slot)
        return SlotChange(slot, {note_field(seat_name): (text or "").strip()})

    # --- waiting queue ---

    def join_waiting_queue(self, slot: Slot, identity: str) -> SlotChange:
        if not self.features.waiting_queue:
            raise FeatureDisabled("Waiting queue is disabled")
        actor = self._actor(identity)
        self._require_active(slot)
        if in_queue(slot, actor):
            raise AlreadyQueued()
        if not self.features.queue_allows_seated and seat_of(slot, actor) is not None:
            raise AlreadyInSlot()
        return SlotChange(slot, {"waiting_queue": [*slot.waiting_queue, actor]})

    def leave_waiting_queue(self, slot: Slot, identity: str) -> SlotChange:
        if not self.features.waiting_queue:
            raise FeatureDisabled("Waiting queue is disabled")
        actor = self._actor(identity)
        if not in_queue(slot, actor):
            return SlotChange(slot)
        self._require_active(slot)
        remaining = [e for e in slot.waiting_queue if not _same(e, actor)]
        return SlotChange(slot, {"waiting_queue": remaining})

    # --- substitute ---

    def claim_substitute(self, slot: Slot, identity: str) -> SlotChange:
        if not self.features.substitute:
            raise FeatureDisabled("Substitute position is disabled")
        actor = self._actor(identity)
        self._require_active(slot)
        if seat_of(slot, actor) is not None or _same(slot.substitute, actor):
            raise AlreadyInSlot()
        if (slot.substitute or "").strip():
            raise SubstituteTaken()
        return SlotChange(slot, {"substitute": actor})

    def release_substitute(self, slot: Slot, identity: str) -> SlotChange:
        if not self.features.substitute:
            raise FeatureDisabled("Substitute position is disabled")
        actor = self._actor(identity)
        if not _same(slot.substitute, actor):
            return SlotChange(slot)
        self._require_active(slot)
        return SlotChange(slot, {"substitute": ""})
