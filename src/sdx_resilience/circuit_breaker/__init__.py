"""Consecutive-failure circuit breaker strategy.

Key behavior notes:
  - The breaker opens once ``failure_threshold`` consecutive failures are
    recorded while ``CLOSED`` and rejects calls until ``break_duration`` passes.
  - Half-open probing is lazy and exclusive: the first call after the cooldown
    becomes the probe, every concurrent caller is rejected until it completes.
  - Caller cancellation during a call is neutral: no failure is counted, and a
    cancelled probe leaves the circuit ``OPEN`` so a later call probes again.
"""

from sdx_resilience.circuit_breaker.breaker import CircuitBreakerStrategy
from sdx_resilience.circuit_breaker.exceptions import CircuitOpenError
from sdx_resilience.circuit_breaker.state import BreakerSnapshot, CircuitState

__all__ = [
    "BreakerSnapshot",
    "CircuitBreakerStrategy",
    "CircuitOpenError",
    "CircuitState",
]
