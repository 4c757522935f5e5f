"""
Shared configuration management for the iCal Gate.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ICAL_GATE_",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Protected backend
    upstream_url: str = Field(default="http://localhost:8080")
    upstream_timeout: float = Field(default=30.0)

    # Token gate
    header_name: str = Field(default="Authorization")
    forward_token: bool = Field(default=False)
    freshness: int = Field(default=3600)
    allow_subnet: str = Field(default="0.0.0.0/24")
    calendar_service_url: str = Field(default="https://ical.psu.ru")
    validation_timeout: float = Field(default=5.0)
    cleanup_interval: int = Field(default=8 * 3600)
    name: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
