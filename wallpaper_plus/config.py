"""
Configuration and settings for the wallpaper API.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Firebase (Realtime Database + Auth)
    firebase_database_url: Optional[str] = Field(default=None)
    firebase_credentials: Optional[str] = Field(
        default=None, description="Path to a service account JSON file"
    )

    # Self-hosted tree store (any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None)

    # S3 object storage
    aws_region: str = Field(default="ap-south-1")
    aws_s3_bucket_name: Optional[str] = Field(default=None)
    aws_s3_endpoint: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    max_upload_bytes: int = Field(default=10 * 1024 * 1024)
    presign_expires_in: int = Field(default=3600, ge=60, le=604800)
    download_timeout: int = Field(default=30)
    max_download_bytes: int = Field(default=50 * 1024 * 1024)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
