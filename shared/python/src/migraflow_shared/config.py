"""
config.py — pydantic-settings Settings class.

All environment variables for migraflow are declared here. Both the
transforms and the API client import `settings` from this module.

Usage:
    from migraflow_shared.config import settings
    print(settings.migration_api_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Upstream migrations API
    # -------------------------------------------------------------------------
    migration_api_url: str = Field(default="http://localhost:8000")
    migration_api_timeout: float = Field(default=30.0, gt=0)
    migration_api_token: str = Field(default="")

    # -------------------------------------------------------------------------
    # Location catalog cache
    # -------------------------------------------------------------------------
    metadata_cache_ttl: float = Field(default=300.0, ge=0)

    # -------------------------------------------------------------------------
    # Query behaviour
    # -------------------------------------------------------------------------
    range_end_mode: Literal["exclusive", "inclusive"] = Field(default="exclusive")
    default_aggregation: Literal["monthly", "quarterly", "yearly"] = Field(
        default="monthly"
    )
    max_sub_queries: int = Field(default=25, ge=1)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator("migration_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton: import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
