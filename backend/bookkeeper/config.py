"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "Bookkeeper Recurring Payments"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/db.sqlite"

    # Scheduling
    timezone: str = "UTC"  # Zone used to resolve "today" for due checks
    process_batch_size: int = 500  # Max rules fired per organization per run

    # Cron trigger auth (optional; when unset the trigger is open)
    cron_secret: Optional[str] = None

    # Server
    frontend_url: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
