"""Environment-driven configuration for the enrichment pipeline."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "notset")


class Settings(BaseSettings):
    """Application configuration settings."""

    tmdb_api_key: str | None = Field(default=None, validation_alias="TMDB_API_KEY")
    tmdb_language: str = Field(default="pt-PT", validation_alias="TMDB_LANGUAGE")
    imdb_max_rps: int = Field(default=10, ge=0, validation_alias="IMDB_MAX_RPS")
    poster_concurrency: int = Field(
        default=8, gt=0, validation_alias="POSTER_CONCURRENCY"
    )
    cache_file: Path = Field(
        default=Path("cache-posters.json"), validation_alias="CACHE_FILE"
    )
    http_timeout: float = Field(default=15.0, gt=0, validation_alias="HTTP_TIMEOUT")
    cache_flush_delay: float = Field(
        default=0.4, ge=0, validation_alias="CACHE_FLUSH_DELAY"
    )
    shutdown_grace: float = Field(default=1.0, gt=0, validation_alias="SHUTDOWN_GRACE")
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _blank_key_disables_tmdb(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    model_config = SettingsConfigDict(case_sensitive=False)


__all__ = ["LOG_LEVELS", "Settings"]
