"""Slot reminders and creation announcements.

:class:`ReminderScheduler` is driven by a periodic task in the bot process.
Each tick pulls slots starting within the reminder window, delivers one
message per slot and only then records ``notification_sent``. A failed
delivery leaves the flag unset so the next tick retries; a failed flag write
after a successful delivery may repeat the reminder once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Protocol

from shared.models.slot import ACTIVE, SEATS, Slot
from shared.repositories.slot import SlotStore
from shared.slot_engine import REMINDER_WINDOW, occupants, reminder_due

logger = logging.getLogger(__name__)

_SEAT_EMOJI = ("1️⃣", "2️⃣", "3️⃣", "4️⃣")


class NotificationChannel(Protocol):
    """Fire-and-forget text delivery. Returns False when delivery failed."""

    async def deliver(self, audience: str, text: str) -> bool: ...


def format_clock(moment: datetime, tz: tzinfo) -> str:
    """``06:00 PM`` style local time."""
    return moment.astimezone(tz).strftime("%I:%M %p")


def render_reminder(slot: Slot, now: datetime, tz: tzinfo) -> str:
    minutes = max(0, round((slot.start_time - now).total_seconds() / 60))
    seated = occupants(slot)

    lines = [
        "⏰ **SLOT REMINDER!** 🎮",
        "",
        f"Your slot starts at **{format_clock(slot.start_time, tz)}** (in {minutes} min)",
        "",
        "📝 **Squad:**",
    ]
    lines.extend(f"{_SEAT_EMOJI[i]} {name}" for i, (_, name, _) in enumerate(seated))
    if slot.substitute:
        lines.append(f"🔁 Sub: {slot.substitute}")

    notes = [f"💬 {name}: {note}" for _, name, note in seated if note]
    if notes:
        lines.append("")
        lines.extend(notes)

    lines.extend(["", "**GET READY!** 🔥"])
    return "\n".join(lines)


def render_announcement(slot: Slot, tz: tzinfo) -> str:
    lines = [
        "🎮 **NEW SLOT!** 🔥",
        "",
        f"⏰ **Time:** {format_clock(slot.start_time, tz)}",
        f"👤 **Created by:** {slot.creator_name}",
        "",
        "📝 **Players:**",
    ]
    lines.extend(f"{_SEAT_EMOJI[i]} {getattr(slot, seat) or '—'}" for i, seat in enumerate(SEATS))
    lines.extend(["", "Join now! 🚀"])
    return "\n".join(lines)


@dataclass
class TickResult:
    """Outcome of one scheduler tick."""

    due: int = 0
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unflagged: list[str] = field(default_factory=list)
    skipped: bool = False
    timed_out: bool = False
    error: str | None = None


class ReminderScheduler:
    """Single-flight reminder pass over the slot store."""

    def __init__(
        self,
        store: SlotStore,
        channel: NotificationChannel,
        audience: str,
        *,
        tz: tzinfo = UTC,
        window: timedelta = REMINDER_WINDOW,
        store_timeout: float = 10.0,
        deliver_timeout: float = 15.0,
        tick_timeout: float = 120.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.channel = channel
        self.audience = audience
        self.tz = tz
        self.window = window
        self.store_timeout = store_timeout
        self.deliver_timeout = deliver_timeout
        self.tick_timeout = tick_timeout
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = asyncio.Lock()

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Run one reminder pass. Overlapping calls are skipped, not queued."""
        result = TickResult()
        if self._lock.locked():
            logger.warning("Reminder tick still running, skipping this one")
            result.skipped = True
            return result

        async with self._lock:
            moment = now or self._clock()
            try:
                await asyncio.wait_for(self._run(moment, result), timeout=self.tick_timeout)
            except TimeoutError:
                result.timed_out = True
                logger.error(
                    f"Reminder tick exceeded {self.tick_timeout}s "
                    f"(sent={len(result.sent)}, due={result.due})"
                )

        if result.sent or result.failed or result.unflagged:
            logger.info(
                f"Reminder tick: due={result.due} sent={len(result.sent)} "
                f"failed={len(result.failed)} unflagged={len(result.unflagged)}"
            )
        return result

    async def _run(self, now: datetime, result: TickResult) -> None:
        try:
            candidates = await asyncio.wait_for(
                self.store.find(
                    status=ACTIVE,
                    notification_sent=False,
                    start_from=now,
                    start_until=now + self.window,
                ),
                timeout=self.store_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            logger.error(f"Failed to fetch due slots: {result.error}")
            return

        for slot in candidates:
            if not reminder_due(slot, now, self.window):
                continue
            result.due += 1
            await self._remind(slot, now, result)

    async def _remind(self, slot: Slot, now: datetime, result: TickResult) -> None:
        slot_id = str(slot.id)
        text = render_reminder(slot, now, self.tz)

        try:
            delivered = await asyncio.wait_for(
                self.channel.deliver(self.audience, text), timeout=self.deliver_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Reminder delivery for slot {slot_id} failed: {type(e).__name__}: {e}")
            delivered = False

        if not delivered:
            result.failed.append(slot_id)
            return

        try:
            await asyncio.wait_for(
                self.store.mark_reminder_sent(slot_id), timeout=self.store_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Reminder for slot {slot_id} delivered but flag not saved "
                f"({type(e).__name__}: {e}); it may be sent again next tick"
            )
            result.unflagged.append(slot_id)
            return

        result.sent.append(slot_id)
        logger.info(f"Sent reminder for slot {slot_id} at {format_clock(slot.start_time, self.tz)}")

    async def announce_created(self, slot_id: str) -> bool:
        """Best-effort "new slot" message. Never raises."""
        try:
            slot = await asyncio.wait_for(self.store.get(slot_id), timeout=self.store_timeout)
            if slot is None or slot.status != ACTIVE:
                logger.debug(f"Not announcing slot {slot_id}: missing or inactive")
                return False
            return bool(
                await asyncio.wait_for(
                    self.channel.deliver(self.audience, render_announcement(slot, self.tz)),
                    timeout=self.deliver_timeout,
                )
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Announcement for slot {slot_id} failed: {type(e).__name__}: {e}")
            return False
