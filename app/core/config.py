"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (bot token, admin group, DB URI, etc.)
- Validates configuration on startup
- Builds the immutable BotConfig handed to the bot core
"""

from dataclasses import dataclass
from typing import Optional, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MAX_FILE_SIZE_BYTES = 30 * 1024 * 1024  # 30 MiB


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Telegram
    BOT_TOKEN: str = Field(
        default="",
        description="Telegram bot token issued by BotFather"
    )
    ADMIN_GROUP_ID: int = Field(
        default=0,
        description="Admin supergroup chat id"
    )
    MESSAGE_TOPIC_ID: Optional[int] = Field(
        default=None,
        description="Forum topic for free-form user messages"
    )
    APPLICATION_TOPIC_ID: Optional[int] = Field(
        default=None,
        description="Forum topic for submitted applications"
    )
    TELEGRAM_API_URL: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL"
    )
    TELEGRAM_TIMEOUT: float = Field(
        default=30.0,
        description="Bot API request timeout in seconds"
    )
    WEBHOOK_URL: Optional[str] = Field(
        default=None,
        description="Public webhook URL registered on startup"
    )
    WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Secret token Telegram echoes in X-Telegram-Bot-Api-Secret-Token"
    )

    # Application workflow
    MAX_FILE_SIZE_BYTES: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_BYTES,
        description="Largest accepted application file in bytes"
    )
    DRAFT_TTL_HOURS: int = Field(
        default=24,
        description="Hours a draft application lives after its last file"
    )

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="relaybot",
        description="MongoDB database name"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )

    @field_validator("MESSAGE_TOPIC_ID", "APPLICATION_TOPIC_ID", "WEBHOOK_URL", "WEBHOOK_SECRET", mode="before")
    @classmethod
    def empty_string_to_none(cls, v):
        """Treat blank env values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("MAX_FILE_SIZE_BYTES")
    @classmethod
    def validate_max_file_size(cls, v):
        if v <= 0:
            raise ValueError("MAX_FILE_SIZE_BYTES must be positive")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@dataclass(frozen=True)
class BotConfig:
    """
    Immutable bot configuration.

    Built once at startup and passed into the relay, the application
    workflow and the dispatcher.
    """
    admin_group_id: int
    message_topic_id: Optional[int] = None
    application_topic_id: Optional[int] = None
    max_file_size: int = DEFAULT_MAX_FILE_SIZE_BYTES
    draft_ttl_hours: int = 24

    @classmethod
    def from_settings(cls, source: Settings) -> "BotConfig":
        return cls(
            admin_group_id=source.ADMIN_GROUP_ID,
            message_topic_id=source.MESSAGE_TOPIC_ID,
            application_topic_id=source.APPLICATION_TOPIC_ID,
            max_file_size=source.MAX_FILE_SIZE_BYTES,
            draft_ttl_hours=source.DRAFT_TTL_HOURS,
        )


# Global settings instance
settings = Settings()


def validate_settings(source: Optional[Settings] = None):
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    source = source or settings
    errors = []

    if not source.BOT_TOKEN:
        errors.append("BOT_TOKEN is required")

    if not source.ADMIN_GROUP_ID:
        errors.append("ADMIN_GROUP_ID is required")

    if not source.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    # Production-specific validations
    if source.is_production:
        if source.WEBHOOK_URL and not source.WEBHOOK_SECRET:
            errors.append("WEBHOOK_SECRET is required in production when WEBHOOK_URL is set")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
