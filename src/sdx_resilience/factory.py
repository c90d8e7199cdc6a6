"""Build configured strategies for the surrounding composition layer."""

from __future__ import annotations

import structlog

from sdx_resilience.circuit_breaker import CircuitBreakerStrategy
from sdx_resilience.composite import CompositeResilienceStrategy
from sdx_resilience.logging import (
    ResilienceLogger,
    configure_structlog,
    get_default_logger,
)
from sdx_resilience.retry import RetryBackoffPolicy, RetryPredicate, RetryStrategy
from sdx_resilience.settings import ResilienceSettings
from sdx_resilience.strategy import ResilienceStrategy
from sdx_resilience.timeout import TimeoutStrategy


def _settings_or_default(settings: ResilienceSettings | None) -> ResilienceSettings:
    return ResilienceSettings() if settings is None else settings


def _logger_or_default(logger: ResilienceLogger | None) -> ResilienceLogger:
    return get_default_logger() if logger is None else logger


def configure_logging(
    settings: ResilienceSettings | None = None,
) -> structlog.stdlib.BoundLogger:
    """Configure process logging at ``settings.log_level``.

    Call once at application startup, before building strategies with the
    default logger.
    """
    return configure_structlog(log_level=_settings_or_default(settings).log_level)


def build_retry_strategy(
    settings: ResilienceSettings | None = None,
    logger: ResilienceLogger | None = None,
    *,
    retry_predicate: RetryPredicate | None = None,
) -> RetryStrategy:
    """Build a ``RetryStrategy`` from ``settings.retry``."""
    retry = _settings_or_default(settings).retry
    policy = RetryBackoffPolicy(
        max_attempts=retry.max_attempts,
        initial_delay=retry.initial_delay_seconds,
        backoff_factor=retry.backoff_factor,
        max_delay=retry.max_delay_seconds,
    )
    return RetryStrategy(
        _logger_or_default(logger),
        policy=policy,
        retry_predicate=retry_predicate,
    )


def build_timeout_strategy(
    settings: ResilienceSettings | None = None,
    logger: ResilienceLogger | None = None,
) -> TimeoutStrategy:
    """Build a ``TimeoutStrategy`` from ``settings.timeout``."""
    timeout = _settings_or_default(settings).timeout
    return TimeoutStrategy(
        _logger_or_default(logger),
        timeout=timeout.timeout_seconds,
    )


def build_circuit_breaker_strategy(
    settings: ResilienceSettings | None = None,
    logger: ResilienceLogger | None = None,
    *,
    name: str = "default",
) -> CircuitBreakerStrategy:
    """Build a ``CircuitBreakerStrategy`` from ``settings.circuit_breaker``.

    Each call returns a breaker with its own state; share the instance across
    callers guarding the same dependency.
    """
    breaker = _settings_or_default(settings).circuit_breaker
    return CircuitBreakerStrategy(
        _logger_or_default(logger),
        failure_threshold=breaker.failure_threshold,
        break_duration=breaker.break_duration_seconds,
        name=name,
    )


def build_composite(*strategies: ResilienceStrategy) -> CompositeResilienceStrategy:
    """Nest ``strategies`` outermost-first."""
    return CompositeResilienceStrategy(*strategies)


def build_default_strategy(
    settings: ResilienceSettings | None = None,
    logger: ResilienceLogger | None = None,
    *,
    name: str = "default",
) -> CompositeResilienceStrategy:
    """Build the standard timeout -> retry -> circuit breaker chain.

    The timeout bounds the whole retry sequence and the breaker counts every
    individual attempt.
    """
    resolved = _settings_or_default(settings)
    return build_composite(
        build_timeout_strategy(resolved, logger),
        build_retry_strategy(resolved, logger),
        build_circuit_breaker_strategy(resolved, logger, name=name),
    )
