"""Application configuration management."""

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
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "order-sync-service"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # IdoSell API Integration
    # -------------------------------------------------------------------------
    idosell_shop_url: str = ""
    idosell_api_key: str = ""
    idosell_api_version: str = "v6"
    idosell_api_timeout: float = 30.0
    idosell_page_size: int = Field(default=100, ge=1, le=100)
    idosell_page_delay_ms: int = Field(default=500, ge=0)

    @property
    def is_idosell_configured(self) -> bool:
        """True when both the shop URL and the API key are set."""
        return bool(self.idosell_shop_url and self.idosell_api_key)

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "orders"
    postgres_password: str = ""
    postgres_db: str = "orders"
    database_url_override: str = Field(default="", alias="DATABASE_URL")

    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        if self.database_url_override:
            return self.database_url_override.replace("+asyncpg", "").replace(
                "+aiosqlite", ""
            )
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Scheduler Settings
    # -------------------------------------------------------------------------
    scheduler_enabled: bool = True
    scheduler_interval_minutes: int = Field(default=10, ge=1, le=59)
    scheduler_lookback_minutes: int = Field(default=30, ge=1)
    scheduler_timezone: str = "Europe/Warsaw"

    # -------------------------------------------------------------------------
    # Status Monitoring Settings
    # -------------------------------------------------------------------------
    status_monitor_fresh_minutes: int = Field(default=15, ge=0)
    status_monitor_modified_lookback_hours: int = Field(default=1, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
