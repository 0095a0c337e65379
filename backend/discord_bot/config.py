"""Bot configuration from environment variables (.env loaded on import)"""

import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo

import discord
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BOT_DIR = Path(__file__).parent

load_dotenv(dotenv_path=BOT_DIR / ".env", encoding="utf-8")


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BotConfig:
    TOKEN: str = os.getenv("DISCORD_BOT_TOKEN", "")
    GUILD_ID: str = os.getenv("DISCORD_GUILD_ID", "")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # Where reminders and announcements go
    REMINDER_CHANNEL_ID: str = os.getenv("SLOT_REMINDER_CHANNEL_ID", "")
    ANNOUNCE_NEW_SLOTS: bool = _flag("SLOT_ANNOUNCE_NEW", "true")

    REMINDER_INTERVAL_MINUTES: float = float(os.getenv("SLOT_REMINDER_INTERVAL_MINUTES", "5"))
    REMINDER_WINDOW_MINUTES: float = float(os.getenv("SLOT_REMINDER_WINDOW_MINUTES", "15"))
    STORE_TIMEOUT: float = float(os.getenv("SLOT_STORE_TIMEOUT", "10"))
    DELIVER_TIMEOUT: float = float(os.getenv("SLOT_DELIVER_TIMEOUT", "15"))
    TICK_TIMEOUT: float = float(os.getenv("SLOT_TICK_TIMEOUT", "120"))
    TIMEZONE: str = os.getenv("SLOT_TIMEZONE", "Asia/Kolkata")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    HTTP_HOST: str = os.getenv("HTTP_HOST", "0.0.0.0")
    HTTP_PORT: int = int(os.getenv("PORT", "8080"))
    WEBHOOK_SECRET: str = os.getenv("SLOT_WEBHOOK_SECRET", "")

    STATUS: str = os.getenv("DISCORD_STATUS", "")
    ACTIVITY_TYPE: str = os.getenv("DISCORD_ACTIVITY_TYPE", "")
    ACTIVITY_NAME: str = os.getenv("DISCORD_ACTIVITY_NAME", "")

    @classmethod
    def tz(cls) -> ZoneInfo:
        return ZoneInfo(cls.TIMEZONE)

    @classmethod
    def validate(cls) -> list[str]:
        """Names of missing required settings"""
        required = {
            "DISCORD_BOT_TOKEN": cls.TOKEN,
            "DATABASE_URL": cls.DATABASE_URL,
            "SLOT_REMINDER_CHANNEL_ID": cls.REMINDER_CHANNEL_ID,
        }
        return [name for name, value in required.items() if not value.strip()]

    @classmethod
    def get_status(cls) -> discord.Status:
        status_map = {
            "online": discord.Status.online,
            "idle": discord.Status.idle,
            "dnd": discord.Status.dnd,
            "invisible": discord.Status.invisible,
        }
        return status_map.get(cls.STATUS.lower(), discord.Status.online)

    @classmethod
    def get_activity(cls) -> discord.Activity | None:
        if not cls.ACTIVITY_NAME:
            return None
        activity_map = {
            "playing": discord.ActivityType.playing,
            "listening": discord.ActivityType.listening,
            "watching": discord.ActivityType.watching,
            "competing": discord.ActivityType.competing,
        }
        activity_type = activity_map.get(cls.ACTIVITY_TYPE.lower(), discord.ActivityType.watching)
        return discord.Activity(type=activity_type, name=cls.ACTIVITY_NAME)
