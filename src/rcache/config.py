"""
Configuration management using pydantic-settings.

Loads configuration from RCACHE_* environment variables and .env files.
Settings are resolved once and handed to caches at construction; no
cache operation reads the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rcache.utils.dates import MS_PER_DAY


@dataclass(frozen=True, slots=True)
class CacheFlags:
    """Process-level toggles that used to come from the execution context."""

    disable_cache: bool = False
    show_log: bool = False


class Settings(BaseSettings):
    """Request cache settings loaded from environment variables.

    Optional:
        RCACHE_DISABLE_CACHE: Bypass the cache for every call
        RCACHE_SHOW_LOG: Log cache hits and misses at INFO
        RCACHE_MAX_RETRIES: Eviction rounds for a forced write
        RCACHE_EVICT_BATCH_SIZE: Entries evicted per round
        RCACHE_GRACE_PERIOD_MS: Time between soft expiry and hard delete
        RCACHE_LEDGER_KEY: Storage key holding the eviction ledger
        RCACHE_CAPACITY_BYTES: Capacity of the built-in storage adapters
        RCACHE_DB_PATH: SQLite file used by the CLI
        RCACHE_LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="RCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment-level toggles
    DISABLE_CACHE: bool = Field(default=False, description="Globally disable the cache")
    SHOW_LOG: bool = Field(default=False, description="Log cache diagnostics at INFO")

    # Eviction
    MAX_RETRIES: int = Field(
        default=20, ge=1, le=1000, description="Forced-write eviction rounds"
    )
    EVICT_BATCH_SIZE: int = Field(
        default=20, ge=1, le=1000, description="Entries evicted per round"
    )

    # Expiration
    GRACE_PERIOD_MS: int = Field(
        default=3 * MS_PER_DAY,
        ge=0,
        description="Extension from soft expiry to hard delete, in milliseconds",
    )

    # Storage
    LEDGER_KEY: str = Field(
        default="cache_queue", description="Storage key of the eviction ledger"
    )
    CAPACITY_BYTES: int = Field(
        default=5 * 1024 * 1024, gt=0, description="Storage capacity in bytes"
    )
    DB_PATH: Path = Field(
        default=Path(".cache") / "rcache.db", description="SQLite storage file"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("LEDGER_KEY")
    @classmethod
    def validate_ledger_key(cls, v: str) -> str:
        """Ledger key must be a non-empty string."""
        v = v.strip()
        if not v:
            raise ValueError("LEDGER_KEY must be non-empty")
        return v

    def cache_flags(self) -> CacheFlags:
        """Return the global disable/log toggles as a structure."""
        return CacheFlags(disable_cache=self.DISABLE_CACHE, show_log=self.SHOW_LOG)

    def ensure_directories(self) -> None:
        """Create the SQLite parent directory if it doesn't exist."""
        self.DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | bool]:
        """Return settings as plain values for display."""
        return {
            "DISABLE_CACHE": self.DISABLE_CACHE,
            "SHOW_LOG": self.SHOW_LOG,
            "MAX_RETRIES": self.MAX_RETRIES,
            "EVICT_BATCH_SIZE": self.EVICT_BATCH_SIZE,
            "GRACE_PERIOD_MS": self.GRACE_PERIOD_MS,
            "LEDGER_KEY": self.LEDGER_KEY,
            "CAPACITY_BYTES": self.CAPACITY_BYTES,
            "DB_PATH": str(self.DB_PATH),
            "LOG_LEVEL": self.LOG_LEVEL,
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
