from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STAMPEDE_", env_file=".env", extra="ignore", populate_by_name=True
    )

    # Target selection (read once at startup)
    load_profile: str = Field(default="medium", validation_alias="LOAD_PROFILE")
    base_url: str | None = Field(default=None, validation_alias="BASE_URL")

    # Scheduling
    control_interval: float = Field(default=1.0, validation_alias="STAMPEDE_CONTROL_INTERVAL")
    graceful_stop: float = Field(default=30.0, validation_alias="STAMPEDE_GRACEFUL_STOP")
    abort_in_flight: bool = Field(default=False, validation_alias="STAMPEDE_ABORT_IN_FLIGHT")
    max_duration: float | None = Field(default=None, validation_alias="STAMPEDE_MAX_DURATION")
    seed: int | None = Field(default=None, validation_alias="STAMPEDE_SEED")

    # HTTP
    request_timeout: float = Field(default=30.0, validation_alias="STAMPEDE_REQUEST_TIMEOUT")
    connectivity_check: bool = Field(default=True, validation_alias="STAMPEDE_CONNECTIVITY_CHECK")
    connectivity_timeout: float = Field(
        default=10.0, validation_alias="STAMPEDE_CONNECTIVITY_TIMEOUT"
    )

    # Observability
    log_level: str = "INFO"
    log_json: bool = False
    enable_metrics: bool = Field(default=False, validation_alias="STAMPEDE_ENABLE_METRICS")
    metrics_port: int | None = Field(default=None, validation_alias="STAMPEDE_METRICS_PORT")
