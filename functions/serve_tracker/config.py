"""
Configuration and settings for the serve tracker backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # "remote" uses the hosted backend with local fallback, "local" never
    # contacts it.
    backend_provider: Literal["remote", "local"] = Field(
        default="remote", env="BACKEND_PROVIDER"
    )

    # Document database (Postgres expected; any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # S3-compatible storage (Tencent COS)
    cos_endpoint: Optional[str] = Field(default=None, env="COS_ENDPOINT")
    cos_region: Optional[str] = Field(default=None, env="COS_REGION")
    cos_bucket: Optional[str] = Field(default=None, env="COS_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # Device-local fallback store
    local_data_dir: str = Field(
        default="data/serve_tracker",
        validation_alias=AliasChoices("SERVE_TRACKER_LOCAL_DATA_DIR", "local_data_dir"),
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "SERVE_TRACKER_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Periodic re-sync; 0 disables the poller
    sync_interval_seconds: float = Field(default=5.0, env="SYNC_INTERVAL_SECONDS")

    # Email notifications through the send_email function
    email_function_url: Optional[str] = Field(default=None, env="EMAIL_FUNCTION_URL")
    email_timeout_seconds: float = Field(default=30.0, env="EMAIL_TIMEOUT_SECONDS")

    # Used by the send_email function itself
    resend_api_key: Optional[str] = Field(default=None, env="RESEND_API_KEY")
    from_email: str = Field(
        default="Serve Tracker <notifications@example.com>", env="FROM_EMAIL"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
