"""Composable async resilience strategies: timeout, retry and circuit breaker."""

from sdx_resilience.cancellation import (
    CancellationToken,
    DeadlineToken,
    LinkedCancellationToken,
    is_caller_cancellation,
    is_deadline_expiry,
)
from sdx_resilience.circuit_breaker import (
    BreakerSnapshot,
    CircuitBreakerStrategy,
    CircuitOpenError,
    CircuitState,
)
from sdx_resilience.composite import CompositeResilienceStrategy
from sdx_resilience.errors import (
    OperationCancelledError,
    OperationTimeoutError,
    ResilienceError,
    RetryExhaustedError,
    TransientError,
)
from sdx_resilience.factory import (
    build_circuit_breaker_strategy,
    build_composite,
    build_default_strategy,
    build_retry_strategy,
    build_timeout_strategy,
    configure_logging,
)
from sdx_resilience.retry import RetryBackoffPolicy, RetryStrategy, is_transient_error
from sdx_resilience.settings import ResilienceSettings
from sdx_resilience.strategy import Operation, ResilienceStrategy
from sdx_resilience.timeout import TimeoutStrategy

__all__ = [
    "BreakerSnapshot",
    "CancellationToken",
    "CircuitBreakerStrategy",
    "CircuitOpenError",
    "CircuitState",
    "CompositeResilienceStrategy",
    "DeadlineToken",
    "LinkedCancellationToken",
    "Operation",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ResilienceError",
    "ResilienceSettings",
    "ResilienceStrategy",
    "RetryBackoffPolicy",
    "RetryExhaustedError",
    "RetryStrategy",
    "TimeoutStrategy",
    "TransientError",
    "build_circuit_breaker_strategy",
    "build_composite",
    "build_default_strategy",
    "build_retry_strategy",
    "build_timeout_strategy",
    "configure_logging",
    "is_caller_cancellation",
    "is_deadline_expiry",
    "is_transient_error",
]
