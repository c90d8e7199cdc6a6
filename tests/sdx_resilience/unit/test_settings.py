from __future__ import annotations

from typing import Any, cast

import pytest
from pydantic import ValidationError

from sdx_resilience.settings import (
    CircuitBreakerSettings,
    ResilienceSettings,
    RetrySettings,
    TimeoutSettings,
)


def _build_settings(**overrides: object) -> ResilienceSettings:
    return ResilienceSettings(**cast(Any, overrides))


def test_defaults_match_standard_policy() -> None:
    settings = _build_settings()

    assert settings.retry == RetrySettings(
        max_attempts=3,
        initial_delay_seconds=1.0,
        backoff_factor=2.0,
        max_delay_seconds=None,
    )
    assert settings.circuit_breaker.failure_threshold == 5
    assert settings.circuit_breaker.break_duration_seconds == 30.0
    assert settings.timeout.timeout_seconds == 30.0
    assert settings.log_level == "INFO"


def test_reads_nested_values_from_prefixed_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("SDX_RESILIENCE_RETRY__MAX_ATTEMPTS", "5")
    monkeypatch.setenv("SDX_RESILIENCE_RETRY__BACKOFF_FACTOR", "1.5")
    monkeypatch.setenv("SDX_RESILIENCE_CIRCUIT_BREAKER__FAILURE_THRESHOLD", "2")
    monkeypatch.setenv("SDX_RESILIENCE_TIMEOUT__TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("sdx_resilience_log_level", "debug")

    settings = ResilienceSettings()

    assert settings.retry.max_attempts == 5
    assert settings.retry.backoff_factor == 1.5
    assert settings.circuit_breaker.failure_threshold == 2
    assert settings.timeout.timeout_seconds == 0.5
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "retry",
    [
        {"max_attempts": 0},
        {"initial_delay_seconds": -1.0},
        {"backoff_factor": 0.9},
        {"initial_delay_seconds": 2.0, "max_delay_seconds": 1.0},
        {"backoff_factor": float("nan")},
    ],
)
def test_rejects_invalid_retry_settings(retry: dict[str, float]) -> None:
    with pytest.raises(ValidationError):
        _build_settings(retry=retry)


@pytest.mark.parametrize(
    "circuit_breaker",
    [
        {"failure_threshold": 0},
        {"break_duration_seconds": 0.0},
        {"break_duration_seconds": float("nan")},
    ],
)
def test_rejects_invalid_circuit_breaker_settings(
    circuit_breaker: dict[str, float],
) -> None:
    with pytest.raises(ValidationError):
        _build_settings(circuit_breaker=circuit_breaker)


@pytest.mark.parametrize("timeout_seconds", [0.0, float("nan")])
def test_rejects_invalid_timeout(timeout_seconds: float) -> None:
    with pytest.raises(ValidationError):
        TimeoutSettings(timeout_seconds=timeout_seconds)


def test_rejects_unknown_log_level() -> None:
    with pytest.raises(ValidationError):
        _build_settings(log_level="TRACE")


def test_nested_models_accept_valid_values() -> None:
    breaker = CircuitBreakerSettings(failure_threshold=1, break_duration_seconds=0.1)

    assert breaker.failure_threshold == 1
