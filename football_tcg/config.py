"""Application configuration via pydantic-settings."""
from __future__ import annotations

from functools import lru_cache

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables (prefix TCG_)."""

    model_config = SettingsConfigDict(
        env_prefix="TCG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database path (SQLite file); empty = data/app.db under the project root
    database_path: str = ""

    # Matchday calendar: fires at matchday_hour:matchday_minute local time
    timezone: str = "Europe/Berlin"
    matchday_hour: int = 18
    matchday_minute: int = 0
    matchday_interval_days: int = 5

    # Recovery sweep window: older than grace, newer than lookback
    recovery_grace_hours: int = 1
    recovery_lookback_hours: int = 24

    scheduler_enabled: bool = True
    log_level: str = "INFO"

    # CORS - comma-separated origins (env var: TCG_CORS_ORIGINS)
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
