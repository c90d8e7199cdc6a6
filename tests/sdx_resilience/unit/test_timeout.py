from __future__ import annotations

import asyncio
import math

import pytest

from sdx_resilience.cancellation import CancellationToken
from sdx_resilience.errors import OperationCancelledError, OperationTimeoutError
from sdx_resilience.timeout import TimeoutStrategy
from tests.sdx_resilience.support.fakes import FakeLogger

pytestmark = pytest.mark.asyncio


@pytest.mark.parametrize("timeout", [0.0, -1.0, math.nan])
async def test_rejects_non_positive_timeout(
    fake_logger: FakeLogger,
    timeout: float,
) -> None:
    with pytest.raises(ValueError, match="timeout must be > 0"):
        TimeoutStrategy(fake_logger, timeout=timeout)


async def test_requires_logger() -> None:
    with pytest.raises(ValueError, match="logger is required"):
        TimeoutStrategy(None, timeout=1.0)


async def test_returns_result_within_timeout(fake_logger: FakeLogger) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=1.0)

    async def _fast(_: CancellationToken) -> int:
        await asyncio.sleep(0.01)
        return 42

    assert await strategy.execute(_fast) == 42
    assert "timeout.expired" not in fake_logger.events


async def test_operation_receives_live_linked_token(fake_logger: FakeLogger) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=1.0)
    caller = CancellationToken()
    seen: list[CancellationToken] = []

    async def _capture(cancellation: CancellationToken) -> None:
        seen.append(cancellation)

    await strategy.execute_action(_capture, caller)

    assert len(seen) == 1
    assert seen[0] is not caller
    assert seen[0].is_cancelled is False


async def test_uncooperative_operation_times_out(fake_logger: FakeLogger) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=0.05)
    finished = asyncio.Event()

    async def _slow(_: CancellationToken) -> int:
        await asyncio.sleep(0.2)
        finished.set()
        return 42

    loop = asyncio.get_running_loop()
    started = loop.time()
    with pytest.raises(OperationTimeoutError) as excinfo:
        await strategy.execute(_slow)
    elapsed = loop.time() - started

    assert elapsed < 0.2
    assert excinfo.value.timeout == 0.05
    assert "timed out after 0.05s" in str(excinfo.value)
    assert isinstance(excinfo.value, TimeoutError)
    assert fake_logger.fields_for("timeout.expired") == [{"timeout": 0.05}]

    await asyncio.wait_for(finished.wait(), timeout=1.0)


async def test_cooperative_operation_cancellation_becomes_timeout(
    fake_logger: FakeLogger,
) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=0.02)

    async def _cooperative(cancellation: CancellationToken) -> None:
        await cancellation.wait()
        cancellation.raise_if_cancelled()

    with pytest.raises(OperationTimeoutError) as excinfo:
        await strategy.execute_action(_cooperative)

    assert isinstance(excinfo.value.__cause__, OperationCancelledError)


async def test_pre_cancelled_token_never_invokes_operation(
    fake_logger: FakeLogger,
) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=1.0)
    token = CancellationToken()
    token.cancel()
    calls = 0

    async def _ok(_: CancellationToken) -> int:
        nonlocal calls
        calls += 1
        return 1

    with pytest.raises(OperationCancelledError):
        await strategy.execute(_ok, token)

    assert calls == 0


async def test_caller_cancellation_during_execution_is_not_a_timeout(
    fake_logger: FakeLogger,
) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=5.0)
    token = CancellationToken()

    async def _cooperative(cancellation: CancellationToken) -> None:
        await cancellation.wait()
        cancellation.raise_if_cancelled()

    asyncio.get_running_loop().call_later(0.02, token.cancel)
    with pytest.raises(OperationCancelledError):
        await asyncio.wait_for(strategy.execute_action(_cooperative, token), 1.0)

    assert "timeout.expired" not in fake_logger.events


async def test_caller_cancellation_stops_waiting_for_uncooperative_operation(
    fake_logger: FakeLogger,
) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=5.0)
    token = CancellationToken()

    async def _stubborn(_: CancellationToken) -> None:
        await asyncio.sleep(0.2)

    asyncio.get_running_loop().call_later(0.02, token.cancel)
    with pytest.raises(OperationCancelledError) as excinfo:
        await asyncio.wait_for(strategy.execute_action(_stubborn, token), 0.15)

    assert excinfo.value.token is token


async def test_operation_failure_passes_through(fake_logger: FakeLogger) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=1.0)
    error = RuntimeError("boom")

    async def _fail(_: CancellationToken) -> None:
        raise error

    with pytest.raises(RuntimeError) as excinfo:
        await strategy.execute(_fail)

    assert excinfo.value is error


async def test_strategy_is_reusable_after_timeout(fake_logger: FakeLogger) -> None:
    strategy = TimeoutStrategy(fake_logger, timeout=0.02)

    async def _slow(_: CancellationToken) -> None:
        await asyncio.sleep(0.1)

    async def _fast(_: CancellationToken) -> str:
        return "ok"

    with pytest.raises(OperationTimeoutError):
        await strategy.execute(_slow)
    assert await strategy.execute(_fast) == "ok"
