"""Central environment-driven settings for the payment simulator.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaySimSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payment"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=0, le=65535)
    read_timeout_seconds: float = Field(default=30.0, gt=0)
    read_header_timeout_seconds: float = Field(default=10.0, gt=0)
    write_timeout_seconds: float = Field(default=30.0, gt=0)
    outcome_seed: int | None = None
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = PaySimSettings()
