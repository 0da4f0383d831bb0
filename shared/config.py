"""
Shared configuration management for the Catalog Explorer.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EXPLORER_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Remote catalog
    catalog_base_url: str = Field(default="https://rickandmortyapi.com/api")
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    relation_concurrency: int = Field(default=8, ge=1)

    # Staleness windows (seconds)
    character_stale_seconds: float = Field(default=30.0, ge=0)
    episode_stale_seconds: float = Field(default=30.0, ge=0)
    location_search_stale_seconds: float = Field(default=60.0, ge=0)
    location_stale_seconds: float = Field(default=60.0, ge=0)
    resident_stale_seconds: float = Field(default=30.0, ge=0)

    # Debounce intervals (seconds)
    search_debounce_seconds: float = Field(default=0.35, ge=0)
    location_debounce_seconds: float = Field(default=0.3, ge=0)

    # Retry hook at the fetch scheduler boundary; 1 attempt disables retries
    fetch_retry_attempts: int = Field(default=1, ge=1)
    fetch_retry_base_delay: float = Field(default=0.5, ge=0)
    fetch_retry_max_delay: float = Field(default=5.0, ge=0)

    # Sessions
    max_sessions: int = Field(default=1000, ge=1)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str = "explorer", port: int = 8000, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
