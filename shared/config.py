"""
Shared configuration management for the KV Access Gateway.
"""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration, read once at startup and frozen afterwards."""

    model_config = SettingsConfigDict(
        env_prefix="KV_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    service_name: str = Field(default="kv")

    # Listener
    server_host: str = Field(default="localhost")
    server_port: int = Field(default=3000, ge=0, le=65535)

    # Backing store
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379, ge=0, le=65535)
    redis_max_connections: int = Field(default=100, ge=1)

    # Logging
    verbose: int = Field(default=0, ge=0)

    # Pipeline
    concurrency_limit: int = Field(default=1024, ge=1)
    timeout_in_millis: int = Field(default=10_000, ge=1)
    max_payload_bytes: int = Field(default=1024 * 5_000, ge=0)  # ~5mb
    admin_token: str = Field(default="secret-token", min_length=1)
    compression_min_size: int = Field(default=500, ge=0)

    # Observability
    metrics_port: int = Field(default=0, ge=0, le=65535)
    enable_tracing: bool = Field(default=False)
    otel_exporter: str = Field(default="http://localhost:4317")

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_in_millis / 1000.0


def get_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, with explicit overrides taking precedence.

    Overrides whose value is ``None`` are ignored so that unset CLI flags fall
    back to the environment or the defaults.
    """
    return Settings(**{key: value for key, value in overrides.items() if value is not None})
