from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised runtime configuration for the mediavault engine."""

    model_config = SettingsConfigDict(
        env_prefix="MEDIAVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "mediavault API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    storage_root: Path = Field(
        default_factory=lambda: Path("private"),
        description="App-private directory receiving ingested attachments.",
    )
    thumbnail_root: Path | None = Field(
        default=None,
        description="Directory for extracted video frames (defaults to <storage_root>/thumbs).",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mediavault.db",
        description="SQLAlchemy compatible DSN for the media index.",
    )

    max_file_size_bytes: int = Field(default=25 * 1024 * 1024, description="Per-file ingest ceiling.")
    copy_buffer_size: int = Field(default=32 * 1024, ge=1, description="Chunk size used while streaming copies.")
    progress_step: float = Field(default=0.25, gt=0, le=1, description="Granularity of copy progress checkpoints.")
    disk_space_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Free space must exceed this multiple of the incoming size.",
    )
    max_concurrent_ingests: int = Field(default=4, ge=1)

    retry_max_attempts: int = Field(default=3, ge=1, description="Attempts made for a transient copy failure.")
    retry_initial_delay_s: float = Field(default=1.0, ge=0, description="Delay before the first retry.")

    thumbnail_size_px: int = Field(default=100, ge=16, description="Bounding box for extracted video frames.")
    thumbnail_jpeg_quality: int = Field(default=80, ge=1, le=100)

    recent_media_limit: int = Field(default=100, ge=1)

    allowed_source_uri_schemes: tuple[str, ...] = Field(
        default=("file",),
        description="URI schemes accepted for import-by-reference.",
    )

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def resolved_thumbnail_root(self) -> Path:
        return self.thumbnail_root or self.storage_root / "thumbs"


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "MEDIAVAULT_ENV": "MEDIAVAULT_ENVIRONMENT",
        "MEDIAVAULT_DB_URL": "MEDIAVAULT_DATABASE_URL",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    return Settings()


__all__ = ["Settings", "get_settings"]
