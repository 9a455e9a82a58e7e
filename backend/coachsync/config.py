"""
CoachSync settings.

Read from the environment and an optional .env file (names are
case-insensitive, e.g. STRAVA_CLIENT_ID, HEVY_API_KEY, CACHE_DIR).
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator, ConfigDict


class Settings(BaseSettings):
    """Typed settings; invalid values fail at import time."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    base_url: str = Field(
        default="http://localhost:8000",
        description="Public URL used to build OAuth redirect URIs"
    )

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./coachsync.db",
        description="Database connection URL"
    )

    # === Strava ===
    strava_client_id: Optional[str] = Field(default=None)
    strava_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("strava_client_secret", "strava_secret")
    )

    # === Hevy ===
    hevy_api_key: Optional[str] = Field(default=None)

    # === HTTP cache ===
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".coach_cache",
        description="Directory for the file-backed response cache"
    )
    cache_disabled: bool = Field(
        default=False,
        description="Bypass fresh cache reads (replaces STRAVA_NOCACHE)"
    )
    cache_ttl_seconds: int = Field(default=24 * 3600, ge=0)
    http_timeout_seconds: float = Field(default=20.0, gt=0)

    # === Tokens ===
    token_refresh_margin_seconds: int = Field(default=120, ge=0)

    # === Sync ===
    sync_overlap_hours: float = Field(default=12, ge=0)
    sync_default_lookback_days: float = Field(default=14, gt=0)
    sync_page_size: int = Field(default=50, ge=1, le=200)
    sync_max_retries: int = Field(default=3, ge=0)
    sync_retry_base_delay_seconds: float = Field(default=30.0, ge=0)
    sync_min_interval_hours: float = Field(
        default=6, ge=0,
        description="Background runner re-syncs accounts whose watermark is older"
    )
    background_sync_enabled: bool = Field(default=True)
    background_sync_interval_seconds: float = Field(default=5.0, gt=0)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Accept the legacy postgres:// scheme some hosts still hand out."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('cache_dir', mode='before')
    @classmethod
    def expand_cache_dir(cls, v):
        """Expand ~ in CACHE_DIR."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Imported everywhere as `from coachsync.config import settings`
settings = Settings()
