"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: PostgresDsn = Field(
        default=...,
        description="PostgreSQL connection URL with asyncpg driver",
    )
    db_pool_size: int = Field(
        default=5,
        ge=1,
        description="Persistent connections kept in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        ge=0,
        description="Extra connections allowed above the pool size",
    )

    # Redis (backfill job queue)
    redis_url: RedisDsn = Field(
        default=...,
        description="Redis connection URL",
    )

    # OpenAI (Embeddings)
    openai_api_key: str = Field(
        default=...,
        description="OpenAI API key for embeddings",
    )
    openai_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model name",
    )
    embedding_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single embedding provider call",
    )
    embedding_max_concurrency: int = Field(
        default=1,
        ge=1,
        description="Maximum number of embedding chunks in flight at once",
    )
    embed_on_ingest: bool = Field(
        default=True,
        description="Generate an embedding inline when a message is created",
    )

    # Backfill
    backfill_default_batch_size: int = Field(
        default=10,
        ge=1,
        description="Texts per provider call when no batch size is requested",
    )
    backfill_max_batch_size: int = Field(
        default=100,
        ge=1,
        description="Upper bound accepted for a requested batch size",
    )
    backfill_queue_name: str = Field(
        default="backfill",
        description="RQ queue used for background backfill jobs",
    )

    # Application
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Application environment",
    )
    app_debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    app_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    return Settings()
