"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote dashboard API
    api_base_url: str = "http://localhost:3000/api/v1"
    api_token: Optional[str] = None
    request_timeout_seconds: float = 30.0
    max_retries: int = 3

    # Cache settings
    default_cache_time_seconds: float = 300.0   # 5 minutes
    default_gc_time_seconds: Optional[float] = 300.0
    pricing_cache_seconds: float = 3600.0       # pricing rarely changes

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
