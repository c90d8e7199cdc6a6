from __future__ import annotations

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from sdx_resilience.logging import get_log_level_value


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(
        env_prefix=prefix,
        env_nested_delimiter="__",
        case_sensitive=False,
    )


class RetrySettings(BaseModel):
    """Retry count and exponential backoff settings."""

    model_config = ConfigDict(allow_inf_nan=False)

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    max_delay_seconds: float | None = None

    @model_validator(mode="after")
    def _validate_retry_settings(self) -> RetrySettings:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if (
            self.max_delay_seconds is not None
            and self.max_delay_seconds < self.initial_delay_seconds
        ):
            raise ValueError("max_delay_seconds must be >= initial_delay_seconds")
        return self


class CircuitBreakerSettings(BaseModel):
    """Consecutive-failure threshold and cooldown settings."""

    model_config = ConfigDict(allow_inf_nan=False)

    failure_threshold: int = 5
    break_duration_seconds: float = 30.0

    @field_validator("failure_threshold", "break_duration_seconds")
    @classmethod
    def _validate_positive(cls, value: float, info: ValidationInfo) -> float:
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value


class TimeoutSettings(BaseModel):
    """Per-execution timeout settings."""

    model_config = ConfigDict(allow_inf_nan=False)

    timeout_seconds: float = 30.0

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be > 0")
        return value


class ResilienceSettings(BaseSettings):
    """Settings for the default resilience strategies.

    Nested values are read from ``SDX_RESILIENCE_RETRY__MAX_ATTEMPTS`` style
    environment variables.
    """

    model_config = prefixed_settings_config("SDX_RESILIENCE_")

    retry: RetrySettings = Field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = Field(
        default_factory=CircuitBreakerSettings
    )
    timeout: TimeoutSettings = Field(default_factory=TimeoutSettings)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        get_log_level_value(value)
        return value.strip().upper()
