import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from conftest import FakeChannel

from shared.exceptions import TransportError
from shared.models.slot import CANCELLED
from shared.reminders import ReminderScheduler, render_announcement, render_reminder

CHANNEL_ID = "123456"
SLOT_START = datetime(2026, 10, 19, 18, 0, tzinfo=UTC)


def at(hour, minute):
    return datetime(2026, 10, 19, hour, minute, tzinfo=UTC)


def scheduler_for(store, channel, **kwargs):
    return ReminderScheduler(store, channel, CHANNEL_ID, tz=UTC, **kwargs)


# ==================== Rendering ====================


def test_render_reminder_lists_squad_and_notes(make_slot):
    slot = make_slot(
        start_time=SLOT_START,
        player2="bob",
        player4="dave",
        player2_comment="on mobile",
        substitute="erin",
    )

    text = render_reminder(slot, at(17, 46), UTC)

    assert "⏰ **SLOT REMINDER!** 🎮" in text
    assert "**06:00 PM** (in 14 min)" in text
    assert "1️⃣ alice\n2️⃣ bob\n3️⃣ dave" in text
    assert "🔁 Sub: erin" in text
    assert "💬 bob: on mobile" in text
    assert text.endswith("**GET READY!** 🔥")


def test_render_announcement_shows_open_seats(make_slot):
    text = render_announcement(make_slot(start_time=SLOT_START, player2="bob"), UTC)

    assert text.startswith("🎮 **NEW SLOT!** 🔥")
    assert "**Time:** 06:00 PM" in text
    assert "**Created by:** alice" in text
    assert "3️⃣ —" in text
    assert "4️⃣ —" in text


# ==================== Ticks ====================


@pytest.mark.asyncio
async def test_reminder_sent_once_across_ticks(store, channel, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    scheduler = scheduler_for(store, channel)

    first = await scheduler.tick(at(17, 46))
    assert first.sent == ["s1"]
    assert len(channel.delivered) == 1
    assert channel.delivered[0][0] == CHANNEL_ID
    assert store.slots["s1"].notification_sent is True

    second = await scheduler.tick(at(17, 50))
    assert second.due == 0
    assert len(channel.delivered) == 1


@pytest.mark.asyncio
async def test_slots_outside_window_are_ignored(store, channel, make_slot):
    store.add(make_slot(id="late", start_time=at(19, 0)))
    store.add(make_slot(id="past", start_time=at(17, 30)))
    store.add(make_slot(id="gone", start_time=at(17, 55), status=CANCELLED))

    result = await scheduler_for(store, channel).tick(at(17, 46))

    assert result.due == 0
    assert channel.attempts == 0


@pytest.mark.asyncio
async def test_failed_delivery_leaves_flag_unset(store, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    channel = FakeChannel(fail_when=lambda text: True)
    scheduler = scheduler_for(store, channel)

    result = await scheduler.tick(at(17, 46))

    assert result.failed == ["s1"]
    assert store.slots["s1"].notification_sent is False
    assert store.mark_calls == []

    # Next tick retries
    channel.fail_when = None
    retry = await scheduler.tick(at(17, 51))
    assert retry.sent == ["s1"]
    assert store.slots["s1"].notification_sent is True


@pytest.mark.asyncio
async def test_delivery_exception_is_contained(store, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    channel = FakeChannel(raise_error=TransportError("channel down"))

    result = await scheduler_for(store, channel).tick(at(17, 46))

    assert result.failed == ["s1"]
    assert store.slots["s1"].notification_sent is False


@pytest.mark.asyncio
async def test_one_failing_slot_does_not_block_others(store, make_slot):
    store.add(make_slot(id="a", creator_name="bob", player1="bob", start_time=at(17, 50)))
    store.add(make_slot(id="b", creator_name="carol", player1="carol", start_time=at(17, 55)))
    channel = FakeChannel(fail_when=lambda text: "bob" in text)

    result = await scheduler_for(store, channel).tick(at(17, 46))

    assert result.due == 2
    assert result.failed == ["a"]
    assert result.sent == ["b"]
    assert store.slots["a"].notification_sent is False
    assert store.slots["b"].notification_sent is True


@pytest.mark.asyncio
async def test_flag_write_failure_is_reported_and_tick_continues(store, channel, make_slot):
    store.add(make_slot(id="a", start_time=at(17, 50)))
    store.add(make_slot(id="b", creator_name="bob", player1="bob", start_time=at(17, 55)))
    store.fail_mark = True

    result = await scheduler_for(store, channel).tick(at(17, 46))

    assert result.unflagged == ["a", "b"]
    assert len(channel.delivered) == 2
    assert store.slots["a"].notification_sent is False


@pytest.mark.asyncio
async def test_store_failure_ends_tick_quietly(store, channel, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    store.fail_find = True

    result = await scheduler_for(store, channel).tick(at(17, 46))

    assert result.error is not None
    assert channel.attempts == 0


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(store, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    release = asyncio.Event()
    started = asyncio.Event()

    class SlowChannel(FakeChannel):
        async def deliver(self, audience, text):
            started.set()
            await release.wait()
            return await super().deliver(audience, text)

    channel = SlowChannel()
    scheduler = scheduler_for(store, channel)

    first = asyncio.create_task(scheduler.tick(at(17, 46)))
    await started.wait()
    overlapping = await scheduler.tick(at(17, 47))
    release.set()
    result = await first

    assert overlapping.skipped is True
    assert result.sent == ["s1"]
    assert len(channel.delivered) == 1


@pytest.mark.asyncio
async def test_tick_is_time_bounded(store, make_slot):
    store.add(make_slot(start_time=SLOT_START))

    class HangingChannel(FakeChannel):
        async def deliver(self, audience, text):
            await asyncio.sleep(10)
            return True

    scheduler = scheduler_for(store, HangingChannel(), tick_timeout=0.05)

    result = await scheduler.tick(at(17, 46))

    assert result.timed_out is True
    assert store.slots["s1"].notification_sent is False


@pytest.mark.asyncio
async def test_tick_uses_clock_when_no_time_given(store, channel, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    scheduler = scheduler_for(store, channel, clock=lambda: at(17, 48))

    result = await scheduler.tick()

    assert result.sent == ["s1"]
    assert "(in 12 min)" in channel.delivered[0][1]


# ==================== Announcements ====================


@pytest.mark.asyncio
async def test_announce_created(store, channel, make_slot):
    store.add(make_slot(start_time=SLOT_START))
    scheduler = scheduler_for(store, channel)

    assert await scheduler.announce_created("s1") is True
    assert "NEW SLOT" in channel.delivered[0][1]


@pytest.mark.asyncio
async def test_announce_skips_missing_or_cancelled(store, channel, make_slot):
    store.add(make_slot(status=CANCELLED))
    scheduler = scheduler_for(store, channel)

    assert await scheduler.announce_created("s1") is False
    assert await scheduler.announce_created("missing") is False
    assert channel.attempts == 0


@pytest.mark.asyncio
async def test_announce_never_raises(store, make_slot):
    store.add(make_slot())
    channel = FakeChannel(raise_error=TransportError("channel down"))

    assert await scheduler_for(store, channel).announce_created("s1") is False


def test_window_default_is_fifteen_minutes(store, channel):
    assert scheduler_for(store, channel).window == timedelta(minutes=15)
