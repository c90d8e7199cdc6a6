"""Core circuit breaker implementation."""

import threading
import time
from collections.abc import Callable
from typing import TypeVar

from sdx_resilience.cancellation import (
    CancellationToken,
    is_caller_cancellation,
    is_deadline_expiry,
    resolve_token,
)
from sdx_resilience.circuit_breaker.exceptions import CircuitOpenError
from sdx_resilience.circuit_breaker.state import BreakerSnapshot, CircuitState
from sdx_resilience.logging import (
    ResilienceLogger,
    log_debug,
    log_info,
    log_warning,
    require_logger,
)
from sdx_resilience.strategy import Operation, ResilienceStrategy

T = TypeVar("T")


class CircuitBreakerStrategy(ResilienceStrategy):
    """Stateful guard that stops calling a persistently failing operation.

    All state lives behind one ``threading.Lock``. Critical sections never
    await, so one instance may be shared by coroutines on a loop and by threads
    running their own loops.
    """

    def __init__(
        self,
        logger: ResilienceLogger | None,
        *,
        failure_threshold: int = 5,
        break_duration: float = 30.0,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Build a circuit breaker strategy.

        Args:
            logger: Structured or stdlib logger for state transitions.
            failure_threshold: Consecutive failures while ``CLOSED`` before
                opening.
            break_duration: Seconds to stay ``OPEN`` before allowing a probe.
            name: Breaker name used in logs and ``CircuitOpenError``.
            clock: Monotonic clock returning seconds.
        """
        self._logger = require_logger(logger)
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if not break_duration > 0:
            raise ValueError("break_duration must be > 0")
        self.name = name
        self.failure_threshold = failure_threshold
        self.break_duration = break_duration
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at: float | None = None
        self._opened_at: float | None = None

    @property
    def state(self) -> CircuitState:
        """Current state. Reading it never starts a half-open probe."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def snapshot(self) -> BreakerSnapshot:
        """Return a consistent view of the breaker internals."""
        with self._lock:
            return BreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                last_failure_at=self._last_failure_at,
                opened_at=self._opened_at,
            )

    def reset(self) -> None:
        """Force the breaker back to a healthy ``CLOSED`` state."""
        with self._lock:
            previous = self._state
            self._close()
        log_info(
            self._logger,
            "circuit_breaker.reset",
            breaker=self.name,
            previous_state=str(previous),
        )

    async def execute(
        self,
        operation: Operation[T],
        cancellation: CancellationToken | None = None,
    ) -> T:
        token = resolve_token(cancellation)
        token.raise_if_cancelled()

        is_probe = self._acquire()
        try:
            result = await operation(token)
        except Exception as exc:
            # An expired time budget is a dependency failure, not a caller choice.
            if is_deadline_expiry(exc, token) or not is_caller_cancellation(
                exc, token
            ):
                self._record_failure(exc, is_probe=is_probe)
            else:
                self._abandon(is_probe)
            raise
        except BaseException:
            self._abandon(is_probe)
            raise

        self._record_success(is_probe=is_probe)
        return result

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at = None
        self._opened_at = None

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now

    def _acquire(self) -> bool:
        """Admit the call or raise ``CircuitOpenError``.

        Returns:
            ``True`` when the admitted call is the half-open probe.
        """
        is_probe = False
        retry_after = 0.0
        with self._lock:
            state = self._state
            if state == CircuitState.CLOSED:
                return False

            # A HALF_OPEN breaker already has its probe in flight.
            if state == CircuitState.OPEN:
                assert self._opened_at is not None
                elapsed = self._clock() - self._opened_at
                retry_after = max(self.break_duration - elapsed, 0.0)
                if retry_after <= 0:
                    self._state = CircuitState.HALF_OPEN
                    is_probe = True

        if is_probe:
            log_info(self._logger, "circuit_breaker.half_opened", breaker=self.name)
            return True

        log_warning(
            self._logger,
            "circuit_breaker.rejected",
            breaker=self.name,
            state=str(state),
            retry_after=retry_after,
        )
        raise CircuitOpenError(self.name, retry_after=retry_after)

    def _record_success(self, *, is_probe: bool) -> None:
        with self._lock:
            if is_probe and self._state == CircuitState.HALF_OPEN:
                self._close()
                closed = True
            else:
                if self._state == CircuitState.CLOSED:
                    self._failure_count = 0
                closed = False

        if closed:
            log_info(self._logger, "circuit_breaker.closed", breaker=self.name)

    def _record_failure(self, exc: Exception, *, is_probe: bool) -> None:
        with self._lock:
            now = self._clock()
            counted = (
                is_probe and self._state == CircuitState.HALF_OPEN
            ) or self._state == CircuitState.CLOSED
            event: str | None = None
            if counted:
                event = "circuit_breaker.failure_recorded"
                self._failure_count += 1
                self._last_failure_at = now
                if (
                    self._state == CircuitState.HALF_OPEN
                    or self._failure_count >= self.failure_threshold
                ):
                    self._open(now)
                    event = "circuit_breaker.opened"
            failure_count = self._failure_count

        if event is None:
            # Outcome of a call admitted before the circuit opened.
            log_debug(
                self._logger,
                "circuit_breaker.stale_failure_ignored",
                breaker=self.name,
                error=repr(exc),
            )
            return

        log_warning(
            self._logger,
            event,
            breaker=self.name,
            probe=is_probe,
            failure_count=failure_count,
            failure_threshold=self.failure_threshold,
            break_duration=self.break_duration,
            exc_info=exc,
        )

    def _abandon(self, is_probe: bool) -> None:
        """Treat a cancelled call as if it never happened."""
        if not is_probe:
            return
        with self._lock:
            if self._state != CircuitState.HALF_OPEN:
                return
            self._state = CircuitState.OPEN
        log_info(self._logger, "circuit_breaker.probe_abandoned", breaker=self.name)
