"""Application configuration."""

from __future__ import annotations

from functools import lru_cache

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

    # Application
    app_name: str = Field(default="Physio Practice Scheduling", alias="APP_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")

    # Calendar grid (hours are local wall-clock hours, inclusive)
    default_timezone: str = Field(default="UTC", alias="DEFAULT_TIMEZONE")
    calendar_first_hour: int = Field(default=7, ge=0, le=23, alias="CALENDAR_FIRST_HOUR")
    calendar_last_hour: int = Field(default=20, ge=0, le=23, alias="CALENDAR_LAST_HOUR")
    calendar_slot_height: int = Field(default=60, gt=0, alias="CALENDAR_SLOT_HEIGHT")

    # Billing
    default_charge_description: str = Field(
        default="Session charge", alias="DEFAULT_CHARGE_DESCRIPTION"
    )
    default_payment_description: str = Field(
        default="Payment received", alias="DEFAULT_PAYMENT_DESCRIPTION"
    )

    # Demo data
    seed_demo_data: bool = Field(default=False, alias="SEED_DEMO_DATA")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

