"""
Application configuration settings.

All configuration is loaded from environment variables with sensible defaults.
"""
from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
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
    app_name: str = "MTG Report"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    postgres_host: str = "db"
    postgres_port: int = 5432
    postgres_user: str = "mtg_user"
    postgres_password: str = "mtg_password"
    postgres_db: str = "mtg_report"
    database_url: str | None = None

    # Celery
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/0"

    # Scryfall API
    # Scryfall asks for 50-100ms between requests (10 requests/second average)
    scryfall_base_url: str = "https://api.scryfall.com"
    scryfall_timeout_seconds: float = 10.0
    http_user_agent: str = "MTGReport/1.0"

    # Exchange rate API (exchangerate-api.com response format). The API key is
    # part of the path: https://v6.exchangerate-api.com/v6/<API_KEY>/latest/USD
    exchange_rate_url: str | None = None
    exchange_target_currency: str = "BRL"
    exchange_timeout_seconds: float = 10.0

    # Price reconciliation job
    reconcile_commit_size: int = 1000
    reconcile_default_exchange_rate: Decimal = Decimal("4.80")
    reconcile_max_requests_per_second: float = 10.0
    reconcile_timeout_seconds: float = 10.0
    reconcile_schedule_hour: int = 6

    @field_validator("reconcile_commit_size")
    @classmethod
    def validate_commit_size(cls, v: int) -> int:
        """Page size doubles as write batch size, so it must be positive."""
        if v < 1:
            raise ValueError("reconcile_commit_size must be at least 1")
        return v

    @field_validator(
        "reconcile_default_exchange_rate",
        "reconcile_max_requests_per_second",
        "reconcile_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("value must be greater than zero")
        return v

    @field_validator("reconcile_schedule_hour")
    @classmethod
    def validate_schedule_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("reconcile_schedule_hour must be between 0 and 23")
        return v

    @field_validator("exchange_target_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def database_url_computed(self) -> str:
        """Compute database URL from components if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
