"""
Configuration management using pydantic-settings.

Loads cache defaults from ``POND_*`` environment variables and .env files.
Only ``Cache.from_settings`` and the CLI read these; a Cache constructed
directly takes its arguments as given.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pond.keys import DEFAULT_HASH_BITS, MAX_HASH_BITS, MIN_HASH_BITS


class Settings(BaseSettings):
    """Cache settings loaded from environment variables.

    Optional:
        POND_DB_PATH: SQLite file backing the cache
        POND_DEFAULT_TTL_SECONDS: Time-to-live applied by store()
        POND_KEY_STRATEGY: hash or uuid
        POND_HASH_BITS: Identifier width for the hash strategy
        POND_CODEC: json, pickle or raw
        POND_BUSY_TIMEOUT_SECONDS: How long a statement waits on a locked file
        POND_LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="POND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DB_PATH: Path = Field(
        default=Path(".cache") / "pond.sqlite", description="SQLite cache file"
    )
    DEFAULT_TTL_SECONDS: float = Field(
        default=600.0, gt=0.0, description="Default time-to-live in seconds"
    )
    KEY_STRATEGY: Literal["hash", "uuid"] = Field(
        default="hash", description="Key normalization strategy"
    )
    HASH_BITS: int = Field(
        default=DEFAULT_HASH_BITS,
        ge=MIN_HASH_BITS,
        le=MAX_HASH_BITS,
        description="Identifier width in bits for the hash strategy",
    )
    CODEC: Literal["json", "pickle", "raw"] = Field(
        default="json", description="Value codec"
    )
    BUSY_TIMEOUT_SECONDS: float = Field(
        default=30.0, ge=0.0, description="SQLite busy timeout in seconds"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level"
    )
    LOG_FILE: Path | None = Field(
        default=None, description="JSON Lines log file written by the CLI"
    )

    @property
    def default_ttl(self) -> timedelta:
        """Default TTL as a timedelta."""
        return timedelta(seconds=self.DEFAULT_TTL_SECONDS)

    def display_items(self) -> dict[str, str | int | float]:
        """Return settings as display-ready values."""
        return {
            "DB_PATH": str(self.DB_PATH),
            "DEFAULT_TTL_SECONDS": self.DEFAULT_TTL_SECONDS,
            "KEY_STRATEGY": self.KEY_STRATEGY,
            "HASH_BITS": self.HASH_BITS,
            "CODEC": self.CODEC,
            "BUSY_TIMEOUT_SECONDS": self.BUSY_TIMEOUT_SECONDS,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else "-",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
