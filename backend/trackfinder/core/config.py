# backend/trackfinder/core/config.py
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings with safe local defaults.

    - R2 settings are OPTIONAL unless STORAGE_MODE=r2
    - SQLite is used unless DATABASE_URL points elsewhere
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="dev", alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Relational store (any SQLAlchemy URL)
    database_url: str = Field(default="sqlite:///./trackfinder.db", alias="DATABASE_URL")

    # Blob storage
    # local = files under LOCAL_STORAGE_DIR
    # r2    = Cloudflare R2 (S3 compatible) is required
    storage_mode: str = Field(default="local", alias="STORAGE_MODE")  # local | r2
    local_storage_dir: str = Field(default="./.trackfinder_blobs", alias="LOCAL_STORAGE_DIR")

    # R2 / S3 (required only if STORAGE_MODE=r2)
    r2_endpoint: Optional[str] = Field(default=None, alias="R2_ENDPOINT")
    r2_bucket: Optional[str] = Field(default=None, alias="R2_BUCKET")
    r2_access_key_id: Optional[str] = Field(default=None, alias="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[str] = Field(default=None, alias="R2_SECRET_ACCESS_KEY")
    r2_region: str = Field(default="auto", alias="R2_REGION")
    r2_prefix: str = Field(default="", alias="R2_PREFIX")

    # Public URLs of stored blobs are "<PUBLIC_BASE_URL>/<key>"
    public_base_url: str = Field(default="http://localhost:8000/media", alias="PUBLIC_BASE_URL")
    default_artwork_url: str = Field(
        default="https://www.trackfinder.co.uk/assets/trackfinder-default-logo.png",
        alias="DEFAULT_ARTWORK_URL",
    )

    # Security
    admin_api_key: str = Field(default="", alias="ADMIN_API_KEY")

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")  # comma-separated or "*"

    # Voting / charts
    min_score: int = Field(default=1, alias="MIN_SCORE")
    max_score: int = Field(default=10, alias="MAX_SCORE")
    default_page_size: int = Field(default=20, ge=1, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=50, ge=1, alias="MAX_PAGE_SIZE")
    auto_approve_uploads: bool = Field(default=True, alias="AUTO_APPROVE_UPLOADS")

    # Compare-and-swap attempts for vote/play statistics
    stats_max_retries: int = Field(default=20, ge=1, alias="STATS_MAX_RETRIES")

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def r2_required(self) -> bool:
        return self.storage_mode.strip().lower() == "r2"

    def validate_r2_or_raise(self) -> None:
        """
        Call this ONLY when you actually use R2.
        This avoids boot-time failures in local/dev/CI.
        """
        if not self.r2_required():
            return

        missing = []
        if not self.r2_endpoint:
            missing.append("R2_ENDPOINT")
        if not self.r2_bucket:
            missing.append("R2_BUCKET")
        if not self.r2_access_key_id:
            missing.append("R2_ACCESS_KEY_ID")
        if not self.r2_secret_access_key:
            missing.append("R2_SECRET_ACCESS_KEY")

        if missing:
            raise RuntimeError(
                "R2 is enabled (STORAGE_MODE=r2) but required env vars are missing: "
                + ", ".join(missing)
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
