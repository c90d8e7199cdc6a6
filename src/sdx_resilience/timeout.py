"""Bound the wall-clock duration of one operation execution."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import TypeVar

from sdx_resilience.cancellation import (
    CancellationToken,
    DeadlineToken,
    is_caller_cancellation,
    resolve_token,
)
from sdx_resilience.errors import OperationTimeoutError
from sdx_resilience.logging import (
    ResilienceLogger,
    log_debug,
    log_warning,
    require_logger,
)
from sdx_resilience.strategy import Operation, ResilienceStrategy

T = TypeVar("T")


def _consume_outcome(task: asyncio.Future[object]) -> None:
    with suppress(asyncio.CancelledError, Exception):
        task.exception()


class TimeoutStrategy(ResilienceStrategy):
    """Fail with ``OperationTimeoutError`` once ``timeout`` seconds elapse.

    The operation receives a token linked to both the caller's token and the
    deadline. Operations that ignore it keep running in the background; the
    strategy only stops waiting for them.
    """

    def __init__(
        self,
        logger: ResilienceLogger | None,
        *,
        timeout: float = 30.0,
    ) -> None:
        """Build a timeout strategy.

        Args:
            logger: Structured or stdlib logger for diagnostics.
            timeout: Maximum execution time in seconds.
        """
        self._logger = require_logger(logger)
        if not timeout > 0:
            raise ValueError("timeout must be > 0")
        self.timeout = timeout

    async def execute(
        self,
        operation: Operation[T],
        cancellation: CancellationToken | None = None,
    ) -> T:
        token = resolve_token(cancellation)
        token.raise_if_cancelled()

        loop = asyncio.get_running_loop()
        deadline = DeadlineToken(self.timeout)
        timer = loop.call_later(self.timeout, deadline.cancel)
        log_debug(self._logger, "timeout.started", timeout=self.timeout)

        with CancellationToken.linked(token, deadline) as linked:
            try:
                task = asyncio.ensure_future(operation(linked))
                waiter = asyncio.ensure_future(linked.wait())
                try:
                    await asyncio.wait(
                        {task, waiter}, return_when=asyncio.FIRST_COMPLETED
                    )
                except asyncio.CancelledError:
                    task.cancel()
                    raise
                finally:
                    waiter.cancel()
            finally:
                timer.cancel()

            if task.done():
                try:
                    return task.result()
                except Exception as exc:
                    if token.is_cancelled or not deadline.is_cancelled:
                        raise
                    if not is_caller_cancellation(exc, linked):
                        raise
                    self._log_expired()
                    raise OperationTimeoutError(self.timeout) from exc

            task.add_done_callback(_consume_outcome)
            token.raise_if_cancelled()
            self._log_expired()
            raise OperationTimeoutError(self.timeout)

    def _log_expired(self) -> None:
        log_warning(self._logger, "timeout.expired", timeout=self.timeout)
