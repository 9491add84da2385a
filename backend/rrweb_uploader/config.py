"""Application configuration using Pydantic settings."""
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

from rrweb_uploader.constants import (
    DEFAULT_IDLE_TIMEOUT_MS,
    DEFAULT_INTER_CHUNK_GAP_MS,
    DEFAULT_SWEEP_INTERVAL_MS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = Field(10000, validation_alias=AliasChoices("api_port", "port"))
    environment: str = "development"

    # Security
    replay_secret: str = ""  # Empty secret rejects every header-authenticated call

    # CORS
    allowed_origins: str = Field(
        "",
        validation_alias=AliasChoices("allowed_origins", "allowed_origin"),
    )

    # Session buffering
    idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS
    sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS
    inter_chunk_gap_ms: int = DEFAULT_INTER_CHUNK_GAP_MS
    strict_sessions: bool = False
    beacon_background_publish: bool = False

    # Google Drive storage (OAuth refresh token flow)
    drive_folder_id: Optional[str] = None
    google_client_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("google_client_id", "oauth_client_id"),
    )
    google_client_secret: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("google_client_secret", "oauth_client_secret"),
    )
    oauth_refresh_token: Optional[str] = None
    google_service_json: Optional[str] = None  # Fallback when no refresh token is set

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def sweep_interval_seconds(self) -> float:
        return self.sweep_interval_ms / 1000


settings = Settings()
