"""Configuration module using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MARKETCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Memory tier
    memory_max_size: int = 100

    # Persistent tier
    cache_dir: Path = Path("/tmp/marketcache")
    enable_file_cache: bool = True

    # Orchestrator
    single_flight: bool = True  # Collapse concurrent misses on the same key
    cleanup_interval_seconds: int = 300  # Periodic expiry sweep

    # Tradera (100 calls per day)
    tradera_daily_limit: int = 100
    budget_reset_hour_utc: int = 0

    # Blocket (5 calls per second)
    blocket_max_requests: int = 5
    blocket_window_seconds: float = 1.0

    # HTTP Client
    http_timeout_connect: float = 10.0
    http_timeout_read: float = 30.0
    http_max_retries: int = 3

    # Logging
    log_level: str = "INFO"

    # Admin API
    api_host: str = "127.0.0.1"
    api_port: int = 8000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
