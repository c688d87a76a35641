"""
EcoFlow - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Database (in-memory store when unset)
    database_url: Optional[str] = None

    # Gemini (multimodal verification model)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    vision_timeout_seconds: float = 30.0

    # Collection verification
    verification_confidence_threshold: float = 0.6
    collection_radius_km: float = 10.0

    # Hotspot detection
    hotspot_radius_km: float = 0.5
    hotspot_min_neighbors: int = 2

    # Rewards
    report_points: int = 10
    collect_points: int = 20

    # Rate limiting for AI-backed endpoints
    rate_limit: str = "20/minute"
    rate_limit_storage_uri: str = "memory://"

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
