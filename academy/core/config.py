"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings read from the environment or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    app_name: str = Field(default="cliniks-academy", alias="APP_NAME")
    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    # Store. DATABASE_URL wins over the Postgres parts.
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str = Field(default="academy", alias="POSTGRES_DB")
    postgres_user: str = Field(default="academy", alias="POSTGRES_USER")
    postgres_password: str = Field(default="academy", alias="POSTGRES_PASSWORD")
    db_pool_size: int = Field(default=10, ge=1, alias="DB_POOL_SIZE")

    # Maintenance worker
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    celery_broker_url: Optional[str] = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: Optional[str] = Field(default=None, alias="CELERY_RESULT_BACKEND")

    # Bearer token accepted by privileged routes
    service_role_key: str = Field(default="change-me-service-role-key", alias="SERVICE_ROLE_KEY")

    # Outbound webhooks
    webhook_timeout: float = Field(default=10.0, gt=0, alias="WEBHOOK_TIMEOUT")
    webhook_max_concurrency: int = Field(default=10, ge=1, alias="WEBHOOK_MAX_CONCURRENCY")
    webhook_user_agent: str = Field(default="Cliniks-Academy-Webhook/1.0", alias="WEBHOOK_USER_AGENT")
    webhook_log_retention_days: int = Field(default=30, ge=1, alias="WEBHOOK_LOG_RETENTION_DAYS")

    # Notifications
    directory_page_size: int = Field(default=1000, ge=1, alias="DIRECTORY_PAGE_SIZE")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return value

    @property
    def async_database_url(self) -> str:
        """SQLAlchemy async URL for the notification and webhook store."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def uses_sqlite(self) -> bool:
        return self.async_database_url.startswith("sqlite")

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def result_backend(self) -> str:
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
