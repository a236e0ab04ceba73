"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Seat query origin
    api_base_url: str = "http://localhost:5010/api"
    api_token: Optional[str] = None
    request_timeout_seconds: float = 30.0

    # Client-side throttling of the origin
    min_request_interval_ms: int = 200
    max_rate_limit_retries: int = 2
    default_retry_after_ms: int = 1000

    # Default staleness window for seat snapshots
    seat_cache_ttl_ms: int = 15000

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
