"""Configuration for safe_tables databases."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from SAFE_TABLES_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SAFE_TABLES_",
        case_sensitive=False,
    )

    fsync_on_save: bool = Field(
        default=True, description="fsync the temporary file before it replaces the target"
    )
    compress_level: int = Field(
        default=6, ge=0, le=9, description="gzip level used when saving to a .gz path"
    )
    verify_on_read: bool = Field(
        default=False, description="Raise IntegrityError when a read file fails its checksum"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Log level used by setup_logging()"
    )
    log_format: Literal["json", "console"] = Field(default="console", description="Log format")


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
