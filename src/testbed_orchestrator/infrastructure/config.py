"""Configuration management for the testbed orchestrator."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from testbed_orchestrator.domain.value_objects.options import DEFAULT_JOB_NAME


class ApiConfig(BaseModel):
    """Testbed REST API connection descriptor."""

    uri: str = Field(default="https://api.grid5000.fr/", description="API endpoint")
    username: str | None = Field(default=None, description="API user (unset inside the testbed)")
    password: str | None = Field(default=None, description="API password")
    version: str = Field(default="sid", description="API version prefix")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    verify_tls: bool = Field(default=True, description="Verify the server certificate")
    max_get_retries: int = Field(default=3, ge=0, description="Extra GET attempts after a timeout")
    retry_pause_seconds: float = Field(default=1.0, ge=0, description="Pause between GET attempts")


class WaitConfig(BaseModel):
    """Polling intervals and time budgets."""

    job_poll_interval_seconds: float = Field(default=5.0, gt=0, description="Job refresh interval")
    job_timeout_seconds: float = Field(default=36000.0, gt=0, description="Max wait for a running job")
    deploy_poll_interval_seconds: float = Field(default=4.0, gt=0, description="Deployment refresh interval")
    deploy_timeout_seconds: float = Field(default=36000.0, gt=0, description="Max wait for deployments")
    release_all_timeout_seconds: float = Field(default=20.0, gt=0, description="Budget for release_all")
    key_import_settle_seconds: float = Field(
        default=1.0, ge=0, description="Pause before looking up a job submitted with a key import"
    )


class ReservationDefaultsConfig(BaseModel):
    """Defaults applied to reservations and deployments."""

    job_name: str = Field(default=DEFAULT_JOB_NAME, description="Default job name")
    public_key_path: Path = Field(
        default=Path("~/.ssh/id_rsa.pub"), description="Public key installed on deployed nodes"
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="console", description="Log format")
    progress_sink: Literal["stdout", "structlog"] = Field(
        default="stdout", description="Destination of progress messages"
    )
    metrics_enabled: bool = Field(default=False, description="Expose Prometheus metrics")
    metrics_port: int = Field(default=8010, ge=1, le=65535, description="Prometheus metrics port")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="testbed_orchestrator", description="Service name for tracing")


class Config(BaseSettings):
    """Main configuration for the testbed orchestrator."""

    model_config = SettingsConfigDict(
        env_prefix="TESTBED_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    api: ApiConfig = Field(default_factory=ApiConfig)
    wait: WaitConfig = Field(default_factory=WaitConfig)
    defaults: ReservationDefaultsConfig = Field(default_factory=ReservationDefaultsConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
