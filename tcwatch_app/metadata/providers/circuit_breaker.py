"""
Per-adapter circuit breaker.

A provider that keeps failing is taken out of rotation for a while instead of
costing every aggregation a full retry cycle:

    closed     calls go out normally
    open       calls are refused locally until recovery_timeout has passed
    half_open  a few trial calls decide between closed and open again

HttpProvider._request() raises ProviderError when a call is refused, so the
orchestrator records it like any other provider failure.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5      # Failure streak that opens the circuit
    success_threshold: int = 2      # Trial successes that close it again
    recovery_timeout: float = 60.0  # Seconds to stay open
    half_open_max_calls: int = 1    # Trial calls in flight while half-open


@dataclass
class CircuitStats:
    calls: int = 0
    failures: int = 0
    rejections: int = 0
    failure_streak: int = 0
    success_streak: int = 0
    transitions: int = 0


class CircuitBreaker:
    """
    Failure tracking for one provider.

    Adapters run on a single event loop, so state changes need no lock.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.stats = CircuitStats()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._trials = 0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._open_for() >= self.config.recovery_timeout:
            self._move(CircuitState.HALF_OPEN)
        return self._state

    @property
    def retry_after(self) -> float:
        """Seconds left before the next trial call is allowed (0 unless open)."""
        if self._state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self.config.recovery_timeout - self._open_for())

    def _open_for(self) -> float:
        return self._clock() - self._opened_at

    def can_execute(self) -> bool:
        """True if a call may go out now. Refusals are counted."""
        state = self.state
        allowed = state == CircuitState.CLOSED or (
            state == CircuitState.HALF_OPEN and self._trials < self.config.half_open_max_calls
        )
        if not allowed:
            self.stats.rejections += 1
        elif state == CircuitState.HALF_OPEN:
            self._trials += 1
        return allowed

    def record_success(self) -> None:
        self._record(ok=True)

    def record_failure(self) -> None:
        self._record(ok=False)

    def _record(self, ok: bool) -> None:
        stats = self.stats
        stats.calls += 1
        if ok:
            stats.success_streak += 1
            stats.failure_streak = 0
        else:
            stats.failures += 1
            stats.failure_streak += 1
            stats.success_streak = 0

        if self._state == CircuitState.HALF_OPEN:
            if not ok:
                self._move(CircuitState.OPEN)
                return
            self._trials = max(0, self._trials - 1)
            if stats.success_streak >= self.config.success_threshold:
                self._move(CircuitState.CLOSED)
        elif not ok and stats.failure_streak >= self.config.failure_threshold:
            self._move(CircuitState.OPEN)

    def _move(self, target: CircuitState) -> None:
        if target == self._state:
            return
        self._state = target
        self.stats.transitions += 1
        self._trials = 0
        if target == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif target == CircuitState.CLOSED:
            self.stats.failure_streak = 0

    def reset(self) -> None:
        self.stats = CircuitStats()
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._trials = 0

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "retry_after": round(self.retry_after, 1),
            "calls": self.stats.calls,
            "failures": self.stats.failures,
            "rejections": self.stats.rejections,
            "failure_streak": self.stats.failure_streak,
        }
