"""Shared error types for sdx_resilience.

Callers can distinguish between:
  - Their own cancellation (``OperationCancelledError``), never wrapped.
  - The resilience layer giving up or refusing to run (``ResilienceError``
    subclasses), with the underlying failure available as ``__cause__``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sdx_resilience.cancellation import CancellationToken


class TransientError(RuntimeError):
    """Generic retry-safe transient dependency failure."""


class ResilienceError(Exception):
    """Base exception for failures reported by a resilience strategy."""


class OperationCancelledError(Exception):
    """Raised when an operation observes a cancelled ``CancellationToken``.

    Attributes:
        token: Token that was cancelled.
    """

    def __init__(self, token: CancellationToken | None = None) -> None:
        self.token = token
        super().__init__("operation was cancelled")


class OperationTimeoutError(ResilienceError, TimeoutError):
    """Raised when an operation does not finish within its configured timeout.

    Attributes:
        timeout: Configured timeout in seconds.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"operation timed out after {timeout:g}s")


class RetryExhaustedError(ResilienceError):
    """Raised when a retried operation fails for the last time.

    Attributes:
        last_error: Failure raised by the final attempt.
        attempts: Number of times the operation was invoked.
    """

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"operation failed after {attempts} attempt(s): {last_error!r}"
        )
