"""Application settings loaded from environment / .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Moderation Desk settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App settings
    MODDESK_DATABASE_URL: str = "sqlite:///moddesk.db"
    MODDESK_DEBUG: bool = False
    MODDESK_VERSION: str = "0.1.0"
    MODDESK_SEED_CATEGORIES: bool = False
    MODDESK_POPULAR_LIMIT: int = 10

    # Rate limits: window length in seconds and max admitted requests per window
    MODDESK_RATE_LOGIN_WINDOW_SECONDS: int = 15 * 60
    MODDESK_RATE_LOGIN_MAX: int = 5
    MODDESK_RATE_REGISTRATION_WINDOW_SECONDS: int = 60 * 60
    MODDESK_RATE_REGISTRATION_MAX: int = 3
    MODDESK_RATE_UPLOAD_WINDOW_SECONDS: int = 60 * 60
    MODDESK_RATE_UPLOAD_MAX: int = 10
    MODDESK_RATE_SEARCH_WINDOW_SECONDS: int = 60
    MODDESK_RATE_SEARCH_MAX: int = 10
    MODDESK_RATE_API_WINDOW_SECONDS: int = 15 * 60
    MODDESK_RATE_API_MAX: int = 100


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()
