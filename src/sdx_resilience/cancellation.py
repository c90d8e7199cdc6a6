"""Cooperative cancellation signal passed to every resilient operation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress
from types import TracebackType

from sdx_resilience.errors import OperationCancelledError

CancellationCallback = Callable[["CancellationToken"], None]


class CancellationToken:
    """One-shot cancellation signal.

    Tokens are loop-affine: ``cancel()`` must be called from the thread running
    the event loop that awaits ``wait()``.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._source: CancellationToken | None = None
        self._callbacks: list[CancellationCallback] = []
        self._event: asyncio.Event | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def source(self) -> CancellationToken | None:
        """Token whose cancellation triggered this one, ``None`` while live."""
        return self._source

    def cancel(self) -> None:
        """Cancel the token. Repeated calls are no-ops."""
        self._trigger(self)

    def _trigger(self, source: CancellationToken) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._source = source
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def register(self, callback: CancellationCallback) -> Callable[[], None]:
        """Run ``callback`` on cancellation and return an unregister function."""
        if self._cancelled:
            callback(self)
            return lambda: None

        self._callbacks.append(callback)

        def _unregister() -> None:
            with suppress(ValueError):
                self._callbacks.remove(callback)

        return _unregister

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise ``OperationCancelledError`` when the token is cancelled."""
        if self._cancelled:
            raise OperationCancelledError(self)

    @classmethod
    def linked(cls, *parents: CancellationToken) -> LinkedCancellationToken:
        """Build a token that is cancelled as soon as any parent is."""
        return LinkedCancellationToken(parents)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "live"
        return f"<{self.__class__.__name__} {state}>"


class LinkedCancellationToken(CancellationToken):
    """Token joined to one or more parents.

    ``source`` reports which parent fired first. ``close()`` detaches the token
    from parents that outlive it.
    """

    def __init__(self, parents: tuple[CancellationToken, ...]) -> None:
        super().__init__()
        if not parents:
            raise ValueError("at least one parent token is required")
        self.parents = parents
        self._unregisters: list[Callable[[], None]] = []
        for parent in parents:
            self._unregisters.append(parent.register(self._trigger))
            if self._cancelled:
                break

    def close(self) -> None:
        unregisters, self._unregisters = self._unregisters, []
        for unregister in unregisters:
            unregister()

    def __enter__(self) -> LinkedCancellationToken:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class DeadlineToken(CancellationToken):
    """Token cancelled when a time budget runs out.

    Attributes:
        timeout: Budget in seconds.
    """

    def __init__(self, timeout: float) -> None:
        super().__init__()
        self.timeout = timeout


def resolve_token(cancellation: CancellationToken | None) -> CancellationToken:
    """Return ``cancellation`` or a fresh token that is never cancelled."""
    return CancellationToken() if cancellation is None else cancellation


def is_caller_cancellation(error: BaseException, token: CancellationToken) -> bool:
    """Return whether ``error`` is cancellation requested through ``token``."""
    return isinstance(error, OperationCancelledError) and token.is_cancelled


def root_source(token: CancellationToken) -> CancellationToken | None:
    """Follow linked tokens back to the one that was cancelled directly."""
    source = token.source
    while source is not None and source.source is not source:
        source = source.source
    return source


def is_deadline_expiry(error: BaseException, token: CancellationToken) -> bool:
    """Return whether ``error`` reports a time budget running out on ``token``."""
    return is_caller_cancellation(error, token) and isinstance(
        root_source(token), DeadlineToken
    )
