"""Configuration management for bitmore."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bitmore.errors import ApiKeyNotConfiguredError, ChannelNotConfiguredError

Network = Literal["local", "dev", "production"]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="BITMORE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model provider
    model: str = Field(default="gpt-4.1-mini", description="Chat completion model name")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BITMORE_API_KEY", "OPENAI_API_KEY"),
        description="API key for the model provider",
    )
    api_base: str | None = Field(default=None, description="Optional model API base URL")
    model_timeout_seconds: float = Field(default=60, gt=0, description="Timeout for one model request")

    # Insurance backend
    backend_url: str = Field(
        default="http://localhost:5001/api",
        validation_alias=AliasChoices("BITMORE_BACKEND_URL", "API_BASE_URL"),
        description="Base URL of the loan/insurance API",
    )
    backend_timeout_seconds: float = Field(default=30, gt=0, description="Timeout for one backend call")

    # Messaging
    network: Network = Field(default="dev", description="Messaging network selector")
    home: Path = Field(default=Path.home() / ".bitmore", description="Directory for local message history")
    telegram_token: str | None = Field(default=None, description="Telegram bot token")
    telegram_allow_from: str = Field(default="", description="Comma-separated user ids or usernames allowed to chat")

    # Agent
    agent_name: str = Field(default="BITMORE_XBT", description="Persona name used in prompts")
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def allow_from(self) -> set[str]:
        return {item.strip() for item in self.telegram_allow_from.split(",") if item.strip()}

    def history_db_path(self) -> Path:
        """One history database per network, so dev and production chats never mix."""
        self.home.mkdir(parents=True, exist_ok=True)
        return self.home / f"{self.network}-messages.db3"

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ApiKeyNotConfiguredError("Model API key not configured. Set BITMORE_API_KEY or OPENAI_API_KEY.")
        return self.api_key

    def require_telegram_token(self) -> str:
        if not self.telegram_token:
            raise ChannelNotConfiguredError("Telegram token not configured. Set BITMORE_TELEGRAM_TOKEN.")
        return self.telegram_token


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and `.env`, then apply non-empty overrides."""

    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
