"""Nest several strategies into one effective policy."""

from __future__ import annotations

from functools import partial
from typing import TypeVar

from sdx_resilience.cancellation import CancellationToken
from sdx_resilience.strategy import Operation, ResilienceStrategy

T = TypeVar("T")


async def _execute_with(
    strategy: ResilienceStrategy,
    inner: Operation[T],
    cancellation: CancellationToken,
) -> T:
    return await strategy.execute(inner, cancellation)


class CompositeResilienceStrategy(ResilienceStrategy):
    """Chain strategies so that each one wraps the next.

    The first strategy is the outermost wrapper and the last one invokes the
    caller's operation directly. Order changes behavior: with
    ``(circuit_breaker, retry)`` the breaker sees one failure per call after
    retries are exhausted, while ``(retry, timeout)`` gives every attempt a
    fresh timeout window.
    """

    def __init__(self, *strategies: ResilienceStrategy) -> None:
        if not strategies:
            raise ValueError("at least one resilience strategy must be provided")
        for strategy in strategies:
            if not isinstance(strategy, ResilienceStrategy):
                raise TypeError(
                    f"expected ResilienceStrategy, got {type(strategy).__name__}"
                )
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> tuple[ResilienceStrategy, ...]:
        return self._strategies

    async def execute(
        self,
        operation: Operation[T],
        cancellation: CancellationToken | None = None,
    ) -> T:
        chained: Operation[T] = operation
        for strategy in reversed(self._strategies[1:]):
            chained = partial(_execute_with, strategy, chained)
        return await self._strategies[0].execute(chained, cancellation)
