"""Configuration management for routinely."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Productivity API Configuration
    api_base_url: str = Field(
        default="http://127.0.0.1:5000/api", description="Base URL of the goals/routines/activities API"
    )
    api_token: str | None = Field(default=None, description="Bearer token for the current identity")
    api_timeout_seconds: float = Field(default=10.0, description="Timeout for a single API request (seconds)")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Local Event Cache Configuration
    local_cache_path: Path | None = Field(
        default=None, description="JSON file backing the local event cache (in-memory when unset)"
    )

    # Day key policy
    day_key_utc_offset_minutes: int = Field(
        default=0,
        description="Fixed UTC offset used to derive calendar day keys from timestamps (0 = UTC)",
    )

    # Notifications
    notification_feed_size: int = Field(default=50, description="Number of notifications kept in the feed")


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_UNAUTHORIZED: int = 401
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404

    # Local cache keys (shared with the web client's storage names)
    CACHE_KEY_ROUTINES: str = "pt_routines_v1"
    CACHE_KEY_ACTIVITIES: str = "pt_activities_v1"

    # Identifier prefixes
    LOCAL_EVENT_ID_PREFIX: str = "a_"
    GOAL_EVENT_ID_PREFIX: str = "g_"

    # Day key format
    DAY_KEY_FORMAT: str = "%Y-%m-%d"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
