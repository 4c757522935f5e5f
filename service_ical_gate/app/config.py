"""
Authorization gate configuration.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.config import BaseConfig
from shared.errors import ConfigurationError
from .domain.client_network import Network, parse_subnet


DEFAULT_GATE_NAME = "ical-gate"


class GateConfig(BaseModel):
    """Immutable settings owned by one AuthorizationGate."""

    model_config = ConfigDict(frozen=True)

    header_name: str = Field(default="Authorization", min_length=1)
    forward_token: bool = False
    freshness: int = Field(default=3600, ge=0)
    allow_subnet: str = "0.0.0.0/24"
    calendar_service_url: str = "https://ical.psu.ru"
    validation_timeout: float = Field(default=5.0, gt=0)
    cleanup_interval: int = Field(default=8 * 3600, gt=0)
    name: str = DEFAULT_GATE_NAME

    @field_validator("allow_subnet")
    @classmethod
    def _check_subnet(cls, value: str) -> str:
        parse_subnet(value)
        return value

    @property
    def allowed_network(self) -> Network:
        return parse_subnet(self.allow_subnet)

    @classmethod
    def build(cls, **values) -> "GateConfig":
        """Construct a config, reporting any invalid value as ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                "invalid gate configuration",
                details={"errors": [err["msg"] for err in e.errors()]}
            ) from e

    @classmethod
    def from_settings(cls, settings: Optional[BaseConfig] = None) -> "GateConfig":
        """Build a gate config from environment-backed settings."""
        settings = settings or BaseConfig()
        return cls.build(
            header_name=settings.header_name,
            forward_token=settings.forward_token,
            freshness=settings.freshness,
            allow_subnet=settings.allow_subnet,
            calendar_service_url=settings.calendar_service_url,
            validation_timeout=settings.validation_timeout,
            cleanup_interval=settings.cleanup_interval,
            name=settings.name or DEFAULT_GATE_NAME,
        )


def create_config() -> GateConfig:
    """Return the default gate configuration."""
    return GateConfig()
