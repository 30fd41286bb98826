"""
Application settings shared by every service in the monorepo.

Values come from environment variables (or a local .env file).
"""

import functools

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Storage
    DATABASE_URL: str = "sqlite:///./estimates.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    KV_BACKEND: str = "memory"  # memory, redis

    # Sessions
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 7
    SESSION_COOKIE_NAME: str = "contractor_session"
    BCRYPT_ROUNDS: int = 12

    # Workflow
    HANDOFF_STRICT_TRANSITIONS: bool = True

    # Estimate creation limits, per client per window
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_CONTRACTOR_ESTIMATES: int = 20
    RATE_LIMIT_HOMEOWNER_ESTIMATES: int = 10

    # Web
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Analytics side channel (Redis stream name, empty = log only)
    ANALYTICS_STREAM: str = ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@functools.lru_cache()
def get_settings() -> Settings:
    """Get settings (cached)."""
    return Settings()
