"""Runtime configuration based on environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TRENDING_TITLES = [
    "Viva la Vida",
    "Bohemian Rhapsody",
    "Yesterday (Beatles song)",
    "Imagine (John Lennon song)",
    "Billie Jean",
    "Hotel California",
    "Smells Like Teen Spirit",
    "Like a Rolling Stone",
]


class ResolverSettings(BaseModel):
    max_hits: int = Field(default=10, ge=1, le=50)
    max_candidates_per_article: int | None = Field(
        default=None,
        ge=1,
        description="Cap on audio candidates resolved per article; None resolves all.",
    )
    request_timeout_seconds: float = Field(default=5.0, gt=0, le=60)
    search_attempts: int = Field(default=2, ge=1, le=5)
    drop_empty_entries: bool = True
    user_agent: str = Field(
        default="WikiTunesBot/1.0 (https://github.com/wikitunes/wikitunes-bot)",
        min_length=1,
    )

    @field_validator("max_candidates_per_article", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class BotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__"
    )

    environment: Literal["dev", "staging", "prod"] = "dev"
    telegram_token: SecretStr
    telegram_proxy: str | None = None
    default_language: str = "en"
    admin_telegram_id: int | None = None
    max_chat_sessions: int = Field(default=10_000, ge=1)

    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    trending_titles: list[str] = Field(default_factory=lambda: list(DEFAULT_TRENDING_TITLES))


@lru_cache
def get_settings() -> BotSettings:
    """Return cached settings instance."""

    return BotSettings()  # type: ignore[call-arg]


__all__ = [
    "BotSettings",
    "DEFAULT_TRENDING_TITLES",
    "ResolverSettings",
    "get_settings",
]
