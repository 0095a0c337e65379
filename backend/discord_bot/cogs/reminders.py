"""Slot reminders, new-slot announcements and the /slots listing."""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

import discord
from discord import app_commands
from discord.ext import commands, tasks

from discord_bot.config import BotConfig
from discord_bot.notifier import DiscordChannelNotifier
from shared.models.slot import ACTIVE, SEATS
from shared.reminders import ReminderScheduler, format_clock
from shared.repositories.slot import SlotRepository
from shared.slot_engine import start_of_day, visible_slots

logger = logging.getLogger(__name__)

SLOT_COLOR = discord.Color.from_str("#EAB308")


class ReminderCog(commands.Cog):
    """Hosts the reminder scheduler"""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.store: SlotRepository | None = None
        self.scheduler: ReminderScheduler | None = None
        self._listener_task: asyncio.Task | None = None
        self._connect_task: asyncio.Task | None = None
        self.reminder_task.change_interval(minutes=BotConfig.REMINDER_INTERVAL_MINUTES)

    async def cog_load(self) -> None:
        # Non-blocking: the bot logs in while the pool comes up
        self._connect_task = asyncio.create_task(self._connect_db_with_retry())

    async def _connect_db_with_retry(self, delay: float = 5, max_delay: float = 60) -> None:
        """Wait for the bot's pool, reconnecting it until it comes up."""
        db_manager = self.bot.db_manager  # type: ignore[attr-defined]
        while not db_manager.is_connected:
            try:
                await db_manager.connect()
                logger.info("Database connected (reminder cog retry)")
            except Exception as e:
                logger.warning(
                    f"Reminder DB connection failed: {type(e).__name__}: {e}, next retry in {delay}s"
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, max_delay)

        self._start(db_manager.pool)
        logger.info("Reminder cog loaded")

    def _start(self, pool) -> None:
        self.store = SlotRepository(pool, timeout=BotConfig.STORE_TIMEOUT)
        self.scheduler = ReminderScheduler(
            self.store,
            DiscordChannelNotifier(self.bot),
            BotConfig.REMINDER_CHANNEL_ID,
            tz=BotConfig.tz(),
            window=timedelta(minutes=BotConfig.REMINDER_WINDOW_MINUTES),
            store_timeout=BotConfig.STORE_TIMEOUT,
            deliver_timeout=BotConfig.DELIVER_TIMEOUT,
            tick_timeout=BotConfig.TICK_TIMEOUT,
        )
        self.reminder_task.start()
        if BotConfig.ANNOUNCE_NEW_SLOTS:
            self._listener_task = asyncio.create_task(self.store.listen_changes(self._on_change))

    async def cog_unload(self) -> None:
        if self._connect_task:
            self._connect_task.cancel()
            self._connect_task = None
        self.reminder_task.cancel()
        if self._listener_task:
            self._listener_task.cancel()
            self._listener_task = None

    # ==================== Background Tasks ====================

    @tasks.loop(minutes=5)
    async def reminder_task(self) -> None:
        if self.scheduler is None:
            return
        try:
            await self.scheduler.tick()
        except Exception as e:
            logger.error(f"Reminder tick crashed: {type(e).__name__}: {e}")

    @reminder_task.before_loop
    async def _wait_ready(self) -> None:
        await self.bot.wait_until_ready()

    async def _on_change(self, op: str, slot_id: str) -> None:
        if op != "INSERT" or self.scheduler is None:
            return
        await self.bot.wait_until_ready()
        await self.scheduler.announce_created(slot_id)

    # ==================== Commands ====================

    @app_commands.command(name="slots", description="Show today's game slots")
    async def slots_command(self, interaction: discord.Interaction) -> None:
        if self.store is None:
            await interaction.response.send_message("Slots are not available yet", ephemeral=True)
            return

        await interaction.response.defer()
        tz = BotConfig.tz()
        now = datetime.now(UTC)
        try:
            slots = await self.store.find(status=ACTIVE, start_from=start_of_day(now, tz))
        except Exception as e:
            logger.error(f"/slots query failed: {type(e).__name__}: {e}")
            await interaction.followup.send("Could not load slots, try again later")
            return

        slots = visible_slots(slots, now, tz)
        embed = discord.Embed(title="Today's Slots", color=SLOT_COLOR)
        if not slots:
            embed.description = "No open slots"
        for slot in slots[:25]:
            seats = [getattr(slot, seat) or "—" for seat in SEATS]
            value = " | ".join(seats)
            if slot.waiting_queue:
                value += f"\nQueue: {', '.join(slot.waiting_queue)}"
            embed.add_field(
                name=f"{format_clock(slot.start_time, tz)} · {slot.creator_name}",
                value=value,
                inline=False,
            )
        await interaction.followup.send(embed=embed)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(ReminderCog(bot))
