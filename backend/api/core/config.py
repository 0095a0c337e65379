"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.slot_engine import SlotFeatures

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # JWT session cookie
    jwt_secret_key: str = Field(..., description="Secret key for JWT token signing")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expire_days: int = Field(default=30, description="JWT token expiration in days")
    cookie_secure: bool = Field(default=False, description="Mark the auth cookie Secure")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    store_timeout: float = Field(default=5.0, description="Per-call slot store timeout (s)")

    # Slot board
    slot_timezone: str = Field(default="Asia/Kolkata", description="Board calendar timezone")
    slot_comments_enabled: bool = Field(default=True)
    slot_waiting_queue_enabled: bool = Field(default=True)
    slot_substitute_enabled: bool = Field(default=True)
    slot_queue_allows_seated: bool = Field(
        default=True, description="Allow a seated player to also join the waiting queue"
    )
    optimistic_retries: int = Field(
        default=3, ge=1, description="Re-read/re-validate attempts on concurrent writes"
    )

    # Server URLs
    frontend_url: str = Field(default="http://localhost:3000", description="Frontend URL for CORS")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Keep-Alive
    enable_keep_alive: bool = Field(default=True, description="Enable heartbeat keep-alive task")
    keep_alive_interval: int = Field(default=300, description="Heartbeat interval in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("slot_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}") from None
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.slot_timezone)

    @property
    def slot_features(self) -> SlotFeatures:
        return SlotFeatures(
            comments=self.slot_comments_enabled,
            waiting_queue=self.slot_waiting_queue_enabled,
            substitute=self.slot_substitute_enabled,
            queue_allows_seated=self.slot_queue_allows_seated,
        )

    @property
    def cors_origins(self) -> list[str]:
        return [self.frontend_url]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
