"""Circuit breaker state primitives."""

from dataclasses import dataclass
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Timestamps are readings of the breaker's monotonic clock.

    Attributes:
        name: Breaker name.
        state: Current breaker state.
        failure_count: Consecutive failures counted since the last success.
        last_failure_at: Clock reading of the last counted failure, if any.
        opened_at: Clock reading when the breaker last entered ``OPEN``.
    """

    name: str
    state: CircuitState
    failure_count: int
    last_failure_at: float | None
    opened_at: float | None
