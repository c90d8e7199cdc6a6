from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from functools import partial
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.retry import retry_base

from sdx_resilience.cancellation import (
    CancellationToken,
    is_caller_cancellation,
    resolve_token,
)
from sdx_resilience.circuit_breaker.exceptions import CircuitOpenError
from sdx_resilience.errors import (
    OperationCancelledError,
    RetryExhaustedError,
    TransientError,
)
from sdx_resilience.logging import (
    ResilienceLogger,
    log_debug,
    log_error,
    log_warning,
    require_logger,
)
from sdx_resilience.strategy import Operation, ResilienceStrategy

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]

_TRANSIENT_MESSAGE_MARKERS = (
    "timeout",
    "timed out",
    "temporarily unavailable",
    "try again",
    "connection reset",
    "connection refused",
    "service unavailable",
    "too many requests",
)

_NEVER_TRANSIENT = (OperationCancelledError, RetryExhaustedError, CircuitOpenError)


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for retry count and exponential backoff.

    Attributes:
        max_attempts: Retries allowed after the initial attempt.
        initial_delay: Seconds to wait before the first retry.
        backoff_factor: Multiplier applied to the delay for each further retry.
        max_delay: Optional upper bound for a single delay, in seconds.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not self.initial_delay >= 0:
            raise ValueError("initial_delay must be >= 0")
        if not self.backoff_factor >= 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if self.max_delay is not None and not self.max_delay >= self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")

    @property
    def total_attempts(self) -> int:
        """Initial attempt plus all retries."""
        return 1 + self.max_attempts

    def delay_for(self, retry_number: int) -> float:
        """Return the delay before retry ``retry_number`` (1-indexed)."""
        if retry_number < 1:
            raise ValueError("retry_number must be >= 1")
        delay = self.initial_delay * self.backoff_factor ** (retry_number - 1)
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay


def is_transient_error(error: BaseException) -> bool:
    """Classify ``error`` as a failure likely to succeed when retried."""
    if isinstance(error, _NEVER_TRANSIENT):
        return False
    if isinstance(error, (TimeoutError, OSError, TransientError)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)


def build_cancellable_sleep(
    cancellation: CancellationToken,
) -> Callable[[float], Awaitable[None]]:
    """Build an async sleep that fails fast when ``cancellation`` fires."""

    async def _cancellable_sleep(delay: float) -> None:
        cancellation.raise_if_cancelled()

        bounded_delay = max(delay, 0.0)
        with suppress(TimeoutError):
            await asyncio.wait_for(cancellation.wait(), timeout=bounded_delay)
        cancellation.raise_if_cancelled()

    return _cancellable_sleep


def build_exponential_retrying(
    *,
    retry: retry_base,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` with exact exponential backoff."""
    stop = stop_after_attempt(policy.total_attempts)
    if policy.max_delay is None:
        wait = wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff_factor,
        )
    else:
        wait = wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff_factor,
            max=policy.max_delay,
        )

    hooks: dict[str, Any] = {}
    if sleep is not None:
        hooks["sleep"] = sleep
    if before_sleep is not None:
        hooks["before_sleep"] = before_sleep
    return AsyncRetrying(
        retry=retry,
        wait=wait,
        stop=stop,
        reraise=reraise,
        **hooks,
    )


class RetryStrategy(ResilienceStrategy):
    """Re-invoke a failing operation with exponential backoff.

    Every terminal failure is reported as ``RetryExhaustedError``, including a
    first-attempt failure rejected by the predicate (``attempts == 1``). The
    strategy keeps no state between calls.
    """

    def __init__(
        self,
        logger: ResilienceLogger | None,
        *,
        policy: RetryBackoffPolicy | None = None,
        retry_predicate: RetryPredicate | None = None,
    ) -> None:
        """Build a retry strategy.

        Args:
            logger: Structured or stdlib logger for attempt diagnostics.
            policy: Retry count and backoff. Defaults to
                ``RetryBackoffPolicy()``.
            retry_predicate: Decides whether a failure is retryable. Defaults
                to ``is_transient_error``.
        """
        self._logger = require_logger(logger)
        self.policy = RetryBackoffPolicy() if policy is None else policy
        self._retry_predicate = (
            is_transient_error if retry_predicate is None else retry_predicate
        )

    async def execute(
        self,
        operation: Operation[T],
        cancellation: CancellationToken | None = None,
    ) -> T:
        token = resolve_token(cancellation)
        token.raise_if_cancelled()

        retrying = build_exponential_retrying(
            retry=retry_if_exception(partial(self._should_retry, token)),
            policy=self.policy,
            sleep=build_cancellable_sleep(token),
            before_sleep=self._log_scheduled_retry,
        )
        attempts = 0

        async def _attempt() -> T:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                log_debug(
                    self._logger,
                    "retry.attempt",
                    attempt=attempts,
                    total_attempts=self.policy.total_attempts,
                )
            return await operation(token)

        try:
            return await retrying(_attempt)
        except Exception as exc:
            if is_caller_cancellation(exc, token):
                raise
            log_error(
                self._logger,
                "retry.exhausted",
                attempts=attempts,
                total_attempts=self.policy.total_attempts,
                exc_info=exc,
            )
            raise RetryExhaustedError(exc, attempts=attempts) from exc

    def _should_retry(self, token: CancellationToken, error: BaseException) -> bool:
        if not isinstance(error, Exception) or is_caller_cancellation(error, token):
            return False
        return self._retry_predicate(error)

    def _log_scheduled_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = None if outcome is None else outcome.exception()
        log_warning(
            self._logger,
            "retry.scheduled",
            attempt=retry_state.attempt_number,
            total_attempts=self.policy.total_attempts,
            delay=self.policy.delay_for(retry_state.attempt_number),
            exc_info=error,
        )
