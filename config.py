"""
Configuration settings for the recall-scheduler engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    store_backend: Literal["memory", "sql"] = Field(
        default="sql",
        description="Schedule store implementation (memory for tests, sql for production)",
    )
    database_url: str = Field(
        default="sqlite:///recall_scheduler.db",
        description="SQLAlchemy connection string (PostgreSQL in production)",
    )
    sql_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # ========================================
    # SM-2 Settings (for spaced repetition)
    # ========================================
    sm2_initial_ease_factor: float = Field(
        default=2.5,
        description="Ease factor given to a concept on its first review",
    )
    sm2_minimum_ease_factor: float = Field(
        default=1.3,
        description="Floor for the ease factor",
    )
    sm2_first_interval: int = Field(
        default=1,
        description="Days until review after the first successful recall",
    )
    sm2_second_interval: int = Field(
        default=6,
        description="Days until review after the second successful recall",
    )
    sm2_success_threshold: int = Field(
        default=3,
        description="Lowest quality (0-5) counted as a successful recall",
    )
    sm2_maximum_interval: int | None = Field(
        default=36500,
        description="Cap on the interval in days (None for uncapped)",
    )
    sm2_history_limit: int | None = Field(
        default=None,
        description="Keep only the newest N performance entries (None keeps all)",
    )
    sm2_expected_response_ms: int = Field(
        default=10000,
        description="Expected answer time used to grade measured (correct/incorrect) reviews",
    )

    # ========================================
    # Mastery Thresholds
    # ========================================
    mastery_repetitions: int = Field(
        default=3,
        description="Consecutive successful reviews required for mastery",
    )
    mastery_ease_factor: float = Field(
        default=2.5,
        description="Minimum ease factor for a concept to count as mastered",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    @field_validator("sm2_maximum_interval", "sm2_history_limit")
    @classmethod
    def _positive_or_none(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("must be a positive integer or unset")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
