"""
Configuration settings for the adaptive quiz engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
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
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./adaptive_quiz.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/adaptive_quiz.log",
        description="Log file path (None for stderr only)",
    )
    log_rotation: str = Field(
        default="10 MB",
        description="Loguru rotation policy for the log file",
    )

    # ========================================
    # Quiz Engine
    # ========================================
    quiz_default_max_questions: int = Field(
        default=10,
        ge=1,
        description="Question budget used when the caller does not pass one",
    )
    quiz_weakness_mode: Literal["realtime", "historical"] = Field(
        default="realtime",
        description=(
            "realtime: update weakness records after every answer; "
            "historical: derive weak topics from past pass/fail only"
        ),
    )
    quiz_session_retention_days: int = Field(
        default=7,
        ge=0,
        description="Completed sessions older than this are removed by cleanup",
    )
    quiz_abandoned_session_ttl_days: int | None = Field(
        default=None,
        description="If set, incomplete sessions older than this are also removed",
    )
    quiz_random_seed: int | None = Field(
        default=None,
        description="Seed for question selection (None for non-deterministic)",
    )

    def get_quiz_engine_config(self) -> dict[str, Any]:
        """Get quiz engine configuration as a dictionary."""
        return {
            "default_max_questions": self.quiz_default_max_questions,
            "weakness_mode": self.quiz_weakness_mode,
            "cleanup": {
                "retention_days": self.quiz_session_retention_days,
                "abandoned_ttl_days": self.quiz_abandoned_session_ttl_days,
            },
            "random_seed": self.quiz_random_seed,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
