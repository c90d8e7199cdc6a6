"""Resilience strategy abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sdx_resilience.cancellation import CancellationToken

T = TypeVar("T")

Operation = Callable[[CancellationToken], Awaitable[T]]


class ResilienceStrategy(ABC):
    """Decorates a cancellable async operation with a resilience behavior.

    Implementations never translate the caller's cancellation into a strategy
    error: ``OperationCancelledError`` raised for the caller's token and
    ``asyncio.CancelledError`` always propagate unchanged.
    """

    @abstractmethod
    async def execute(
        self,
        operation: Operation[T],
        cancellation: CancellationToken | None = None,
    ) -> T:
        """Run ``operation`` under this strategy and return its result.

        Args:
            operation: Callable receiving the token it should observe.
            cancellation: Caller's token. ``None`` means never cancelled.
        """

    async def execute_action(
        self,
        operation: Operation[object],
        cancellation: CancellationToken | None = None,
    ) -> None:
        """Run a side-effect-only ``operation`` and discard its result."""
        await self.execute(operation, cancellation)
