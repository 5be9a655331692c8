from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="HOMEVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Homevault API."""

    model_config = SettingsConfigDict(
        env_prefix="HOMEVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Homevault API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./homevault.db",
        description="SQLAlchemy compatible DSN.",
    )

    media_path: Path = Field(
        default_factory=lambda: Path("/mnt/storage/media"),
        description="Base directory for originals and derived assets.",
    )
    max_upload_size_bytes: int = Field(default=100 * 1024 * 1024, description="Hard limit for a single upload.")
    upload_chunk_size_bytes: int = Field(default=1024 * 1024, description="Copy buffer used while persisting uploads.")

    subprocess_timeout_s: float = Field(default=60.0, gt=0, description="Timeout for heif-convert and ffmpeg calls.")
    heif_convert_binary: str = Field(default="heif-convert")
    ffmpeg_binary: str = Field(default="ffmpeg")

    preview_quality: int = Field(default=85, ge=1, le=100, description="JPEG quality for HEIC previews.")
    thumbnail_size_px: int = Field(default=300, ge=16, description="Bounding box edge for thumbnails.")
    thumbnail_quality: int = Field(default=80, ge=1, le=100)
    video_frame_offset_s: float = Field(default=1.0, ge=0, description="Preferred frame position for video thumbnails.")
    web_quality: int = Field(default=80, ge=1, le=100, description="WebP quality for web-optimised copies.")
    web_max_dimension_px: int = Field(default=2048, ge=64)

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "HOMEVAULT_ENV": "HOMEVAULT_ENVIRONMENT",
        "HOMEVAULT_DB_URL": "HOMEVAULT_DATABASE_URL",
        "MEDIA_PATH": "HOMEVAULT_MEDIA_PATH",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()

    secrets = Secrets.from_settings(settings)

    if settings.environment == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")

    settings.secrets = secrets
    return settings


__all__ = ["Settings", "Secrets", "get_settings"]
