"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    default_bucket: str | None = None
    thumbnail_bucket: str | None = None
    thumbnail_prefix: str = "thumbnails"
    thumbnail_max_size: int = Field(default=512, gt=0)
    thumbnail_quality: int = Field(default=80, ge=1, le=95)
    max_attempts: int = Field(default=5, ge=1)
    database_timeout_seconds: int = Field(default=10, gt=0)
    storage_timeout_seconds: int = Field(default=20, gt=0)
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
