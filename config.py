"""
Configuration settings for the progression engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

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

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./progression.db",
        description="SQLAlchemy connection string (PostgreSQL in production, SQLite for local use)",
    )
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        description="How long a SQLite writer waits for the database lock",
    )

    # ========================================
    # Transactions
    # ========================================
    transaction_max_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts per mutating operation before a conflict is surfaced",
    )
    transaction_retry_backoff_ms: int = Field(
        default=20,
        ge=0,
        description="Base backoff between conflict retries (milliseconds, linear)",
    )

    # ========================================
    # Catalog
    # ========================================
    default_catalog_path: str | None = Field(
        default=None,
        description="Catalog JSON loaded by `progression catalog load` when no path is given",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )
    user_id_header: str = Field(
        default="X-User-Id",
        description="Header carrying the authenticated user id from the identity provider",
    )

    # ========================================
    # Helper Methods
    # ========================================
    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    def get_transaction_config(self) -> dict[str, int]:
        """Return retry settings for mutating operations."""
        return {
            "max_retries": self.transaction_max_retries,
            "backoff_ms": self.transaction_retry_backoff_ms,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
