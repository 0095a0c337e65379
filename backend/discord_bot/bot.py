"""
Slot board Discord bot
Hosts the reminder scheduler, new-slot announcements and /slots
"""

import asyncio
import logging

import discord
from discord.ext import commands

from discord_bot.config import BotConfig
from discord_bot.http_server import BotHttpServer
from shared.database import DatabaseManager, PoolConfig
from shared.logging_setup import setup_logging

logger = logging.getLogger("discord_bot")


class SlotBot(commands.Bot):
    """Discord client carrying the database pool and HTTP server"""

    def __init__(self):
        intents = discord.Intents.default()

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.initial_extensions = ["discord_bot.cogs.reminders"]
        self.db_manager = DatabaseManager(BotConfig.DATABASE_URL, PoolConfig.for_service("bot"))
        self.http_server = BotHttpServer(
            self,
            host=BotConfig.HTTP_HOST,
            port=BotConfig.HTTP_PORT,
            webhook_secret=BotConfig.WEBHOOK_SECRET,
        )

    @property
    def db_pool(self):
        """Connected pool or None"""
        if not self.db_manager.is_connected:
            return None
        return self.db_manager.pool

    async def setup_hook(self):
        try:
            await self.db_manager.connect()
        except Exception as e:
            # Cogs retry against db_pool on their own
            logger.error(f"[red]Database connection failed:[/red] {type(e).__name__}: {e}")

        await self.http_server.start()

        loaded = []
        failed = []
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                failed.append(f"{extension.split('.')[-1]} ({e})")

        if loaded:
            logger.info(f"[green]Loaded cogs:[/green] {', '.join(loaded)}")
        if failed:
            logger.error(f"[red]Failed to load:[/red] {', '.join(failed)}")

        if BotConfig.GUILD_ID:
            guild = discord.Object(id=int(BotConfig.GUILD_ID))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"[magenta]Synced slash commands to guild {BotConfig.GUILD_ID}[/magenta]")
        else:
            await self.tree.sync()
            logger.info("[magenta]Synced slash commands globally[/magenta]")

    async def on_ready(self):
        await self.change_presence(
            status=BotConfig.get_status(), activity=BotConfig.get_activity()
        )
        logger.info(
            f"[bold green]Bot ready:[/bold green] {self.user} [dim](ID: {self.user.id})[/dim]"
        )
        logger.info(
            f"[cyan]Connected:[/cyan] {len(self.guilds)} guilds | discord.py {discord.__version__}"
        )

    async def close(self):
        await self.http_server.stop()
        await self.db_manager.disconnect()
        await super().close()


async def main():
    missing = BotConfig.validate()
    if missing:
        logger.error(f"[bold red]Missing settings:[/bold red] {', '.join(missing)}")
        return

    async with SlotBot() as bot:
        try:
            await bot.start(BotConfig.TOKEN)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()


def run():
    setup_logging(
        BotConfig.LOG_LEVEL,
        markup=True,
        quiet=("discord", "discord.http", "aiohttp"),
    )
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("[yellow]Bot stopped[/yellow]")
    except Exception as e:
        logger.error(f"[bold red]Bot crashed:[/bold red] {e}", exc_info=e)


if __name__ == "__main__":
    run()
