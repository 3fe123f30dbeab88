"""Application configuration using Pydantic Settings v2.

Loads configuration from environment variables with .env file support.
All settings are validated at startup and available as typed attributes.
"""

from __future__ import annotations

import functools
import json
from typing import Any

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Foundry application settings.

    Configuration is loaded from environment variables.
    A .env file in the project root is also read if present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────
    app_name: str = "Foundry"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ── PostgreSQL ───────────────────────────────────────────────
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "foundry"
    postgres_user: str = "foundry"
    postgres_password: str = "foundry_dev_password"
    database_url: str | None = None
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_recycle_seconds: int = 1800
    db_echo: bool = False

    # ── Backend ──────────────────────────────────────────────────
    cors_origins: list[str] = ["http://localhost:3000"]

    # ── Credential encryption ────────────────────────────────────
    encryption_key: str = "dev-encryption-key-change-in-production"
    encryption_key_previous: str = ""  # Previous key for rotation

    # ── Exports ──────────────────────────────────────────────────
    export_dir: str = "data/exports"
    export_retention_days: int = 30

    # ── PII detection ────────────────────────────────────────────
    pii_name_language: str = "en"
    pii_name_score_threshold: float = 0.6
    pii_name_hinted_score_threshold: float = 0.3  # fields mapped with is_pii

    # ── Processing jobs ──────────────────────────────────────────
    job_warning_limit: int = 100
    job_cancel_check_interval: int = 100  # records; 0 = source boundaries only

    # ── Source connectors ────────────────────────────────────────
    connector_timeout_seconds: float = 30.0
    connector_max_retries: int = 3
    preview_row_limit: int = 10

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        """Parse CORS origins from JSON string or list."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except (json.JSONDecodeError, TypeError):
                return [origin.strip() for origin in v.split(",")]
        if isinstance(v, list):
            return [str(item) for item in v]
        return ["http://localhost:3000"]

    @model_validator(mode="after")
    def build_database_url(self) -> Settings:
        """Build database_url from components if not set."""
        if not self.database_url:
            self.database_url = (
                f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
                f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
            )
        return self


@functools.lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""
    return Settings()
