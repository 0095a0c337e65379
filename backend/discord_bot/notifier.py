"""Discord text channel as a notification channel."""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

logger = logging.getLogger(__name__)


class DiscordChannelNotifier:
    """Deliver plain text to a channel id. Failures are reported, never raised."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def _resolve(self, audience: str) -> discord.abc.Messageable | None:
        try:
            channel_id = int(audience)
        except ValueError:
            logger.error(f"Invalid channel id: {audience!r}")
            return None

        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden, discord.HTTPException) as e:
                logger.warning(f"Cannot fetch channel {channel_id}: {e}")
                return None

        if not isinstance(channel, discord.TextChannel | discord.Thread):
            logger.warning(f"Channel {channel_id} is not a text channel")
            return None
        return channel

    async def deliver(self, audience: str, text: str) -> bool:
        if not self.bot.is_ready():
            logger.warning("Discord not ready yet")
            return False

        channel = await self._resolve(audience)
        if channel is None:
            return False

        try:
            await channel.send(text, allowed_mentions=discord.AllowedMentions.none())
        except discord.Forbidden:
            logger.warning(f"Cannot send to channel {audience}")
            return False
        except discord.HTTPException as e:
            logger.warning(f"Sending to channel {audience} failed: {e}")
            return False
        return True
