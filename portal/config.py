"""
Configuration and settings for the portal backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from portal.constants import DEFAULT_SEMESTERS, DEFAULT_SUBJECTS


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    locale: str = Field(default="ar")

    # Flat JSON record store
    data_dir: str = Field(default="data")

    # Administrative uploads and schedule edits
    admin_username: str = Field(default="admin")
    admin_password: str = Field(default="admin")

    max_upload_bytes: int = Field(default=25 * 1024 * 1024)

    # S3-compatible media host
    media_endpoint: Optional[str] = Field(default=None)
    media_region: Optional[str] = Field(default=None)
    media_bucket: Optional[str] = Field(default=None)
    media_public_base_url: Optional[str] = Field(default=None)
    media_folder: str = Field(default="student-portal")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Social document database (Firestore, or SQL as a self-hosted fallback)
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)
    social_database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    subjects: list[str] = Field(default_factory=lambda: list(DEFAULT_SUBJECTS))
    semesters: list[str] = Field(default_factory=lambda: list(DEFAULT_SEMESTERS))

    @property
    def firebase_enabled(self) -> bool:
        return bool(self.firebase_credentials_path or self.firebase_project_id)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
