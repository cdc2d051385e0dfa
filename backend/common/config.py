"""Application configuration via environment variables.

Uses pydantic-settings to load from .env file and environment variables.
All config is centralized here - import `get_settings()`.

The forecasting core never reads these values itself: the API layer and
the service constructors resolve them and pass explicit arguments down.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ─── Database ───
    database_url: str = "sqlite+aiosqlite:///./cashflow.db"
    db_echo: bool = False

    # ─── App ───
    environment: str = "development"
    log_level: str = "INFO"
    app_version: str = "0.1.0"

    # ─── Forecast Defaults ───
    default_confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    default_period_unit: Literal["daily", "weekly", "monthly"] = "daily"
    default_horizon_days: int = Field(default=7, ge=1)
    default_lookback_days: int = Field(default=60, ge=1)
    default_sma_window: int = Field(default=7, ge=1)
    history_days: int = Field(default=365, ge=1)
    model_version: str = "1.0"

    # ─── Worker Pool ───
    forecast_worker_threads: int = Field(default=4, ge=1, le=64)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton.

    Uses lru_cache so Settings is only instantiated once.
    In tests, call `get_settings.cache_clear()` to reset.
    """
    return Settings()
