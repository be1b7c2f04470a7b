"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated. Structured
policy tables (generation modes, default evidence rubric, review thresholds)
live in config/default.yaml and are loaded once through load_yaml_config().

Usage:
    from sprint_engine.config import settings, yaml_config

    # Access settings
    provider = settings.PLANNER_PROVIDER
    modes = yaml_config.get("generation_modes", {})
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Sprint Engine"
    DEBUG: bool = False

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "sprints"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "sprints"

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def POSTGRES_URL_SYNC(self) -> str:
        """Sync PostgreSQL connection URL for Alembic migrations."""
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Provider selection per purpose: "groq" (hosted) or "lmstudio" (local)
    PLANNER_PROVIDER: str = "groq"
    REVIEWER_PROVIDER: str = "groq"
    ADAPTATION_PROVIDER: str = "groq"

    # Groq (hosted, low latency). Models are passed to LiteLLM as groq/<model>.
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    REVIEWER_GROQ_MODEL: str = "llama-3.3-70b-versatile"
    ADAPTATION_GROQ_MODEL: str = "llama-3.3-70b-versatile"
    GROQ_TIMEOUT_SECONDS: float = 30.0

    # LM Studio (local, OpenAI-compatible endpoint)
    LMSTUDIO_BASE_URL: str = "http://localhost:1234"
    LMSTUDIO_API_KEY: str = ""
    LMSTUDIO_MODEL: str = "qwen2.5-7b-instruct"
    REVIEWER_LMSTUDIO_MODEL: str = "qwen2.5-7b-instruct"
    ADAPTATION_LMSTUDIO_MODEL: str = "qwen2.5-7b-instruct"
    LMSTUDIO_TIMEOUT_SECONDS: float = 120.0

    # Sampling
    PLANNER_TEMPERATURE: float = 0.2
    PLANNER_MAX_TOKENS: int = 2048
    REVIEWER_TEMPERATURE: float = 0.2
    REVIEWER_MAX_TOKENS: int = 1024
    ADAPTATION_TEMPERATURE: float = 0.3
    ADAPTATION_MAX_TOKENS: int = 1024

    # Planner
    PLANNER_VERSION: str = "planner-v2"
    # Attempts for malformed (invalid_json / validation_failed) plans. Timeouts never retry.
    PLANNER_MAX_ATTEMPTS: int = 2

    # Completion and generation policy
    COMPLETION_MIN_RATE: float = 50.0  # Percent of tasks required to complete
    SPRINT_BUFFER_TARGET: int = 3  # Planned sprints kept ahead of the learner
    MAX_BATCH_SIZE: int = 10
    STREAK_MILESTONE_INTERVAL: int = 7
    RECALIBRATE_ON_COMPLETION: bool = True
    RECALIBRATION_WINDOW: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
