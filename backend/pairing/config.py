"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) - single instance per process

Design Decisions:
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - Rate limit defaults mirror the product limits: 10 requests / 20 responses per hour
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pairing.core.domain_types import FailStrategy


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://pairing:pairing@db:5432/pairing"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Transactions
    transaction_isolation_level: str | None = "SERIALIZABLE"
    transaction_max_retries: int = 5
    transaction_base_delay_ms: int = 20
    transaction_max_delay_ms: int = 1_000
    batch_write_limit: int = 500

    # Rate limiting
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_backend: str = "redis"  # redis | memory
    rate_limit_fail_strategy: FailStrategy = FailStrategy.FAIL_OPEN
    rate_limit_window_seconds: int = 3600
    partnership_request_limit: int = 10
    partnership_response_limit: int = 20

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
