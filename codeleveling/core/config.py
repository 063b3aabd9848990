"""
Configuration settings for CodeLeveling Service
"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env"""

    # App
    APP_NAME: str = "CodeLeveling Service"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./codeleveling.sqlite"
    DB_ECHO: bool = False
    SEED_ON_STARTUP: bool = True
    DEFAULT_USERNAME: str = "LocalUser"

    # Gamification
    XP_PER_LEVEL: int = 200
    RECENCY_BONUS_MAX: int = 200  # Leaderboard bonus for a user active right now
    RECENCY_DECAY_PER_DAY: int = 20  # Bonus lost per day of inactivity
    LEADERBOARD_LIMIT: int = 20
    DAILY_TIMEZONE: str = "UTC"  # IANA zone that defines "today" for daily tasks

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Returns cached settings instance (singleton)"""
    return Settings()
