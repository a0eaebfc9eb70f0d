"""
Shared configuration management for the Pulwave cache layer.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Backend selection
    use_redis: bool = Field(default=False)
    redis_url: Optional[str] = Field(default=None)
    redis_socket_timeout: float = Field(default=5.0, gt=0)
    key_prefix: str = Field(default="cache:")

    # Local store
    max_size: int = Field(default=1000, ge=1)
    default_ttl: float = Field(default=300.0, gt=0)

    # Reference data (lookup tables, translation bundles)
    reference_data_url: str = Field(default="http://localhost:54321/rest/v1")
    reference_data_api_key: Optional[str] = Field(default=None)
    reference_data_timeout: float = Field(default=10.0, gt=0)
    lookup_ttl: float = Field(default=300.0, gt=0)  # 5 minutes
    translation_ttl: float = Field(default=24 * 60 * 60, gt=0)  # 24 hours
    translation_retention_ttl: float = Field(default=30 * 24 * 60 * 60, gt=0)  # 30 days


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)


@lru_cache(maxsize=1)
def get_cache_config() -> BaseConfig:
    """Get the process-wide cache configuration.

    Loading never fails because of a missing Redis URL; that check belongs
    to provider selection.
    """
    return BaseConfig()
