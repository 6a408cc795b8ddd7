"""Shared circuit breaker for external service calls.

Used by the language-model client and the backend client to skip calls to
down services for a cooldown period after repeated failures.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Simple circuit breaker: closed -> open (after N failures) -> half-open (after cooldown)."""

    failure_threshold: int = 3
    cooldown_seconds: float = 60.0
    label: str = "service"
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _consecutive_failures: int = field(default=0, init=False, repr=False)
    _opened_at: Optional[float] = field(default=None, init=False, repr=False)

    @property
    def state(self) -> BreakerState:
        if self._consecutive_failures < self.failure_threshold:
            return BreakerState.CLOSED
        if self._opened_at is not None and (self.clock() - self._opened_at) >= self.cooldown_seconds:
            return BreakerState.HALF_OPEN
        return BreakerState.OPEN

    def should_try(self) -> bool:
        return self.state is not BreakerState.OPEN

    def record_success(self) -> None:
        if self._consecutive_failures >= self.failure_threshold:
            logger.info("Circuit breaker CLOSED for %s", self.label)
        self._consecutive_failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        was_half_open = self.state is BreakerState.HALF_OPEN
        self._consecutive_failures += 1
        if was_half_open:
            # failed probe: restart the cooldown
            self._opened_at = self.clock()
            logger.warning("Circuit breaker probe failed for %s; reopening", self.label)
            return
        if self._consecutive_failures >= self.failure_threshold and self._opened_at is None:
            self._opened_at = self.clock()
            logger.warning(
                "Circuit breaker OPENED for %s after %d consecutive failures; "
                "skipping for %.0fs",
                self.label,
                self._consecutive_failures,
                self.cooldown_seconds,
            )

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
    ) -> T:
        """Run fn through the breaker; return fallback() when open or when fn raises."""
        if not self.should_try():
            logger.warning("%s circuit breaker open; using fallback", self.label)
            return fallback()
        try:
            result = await fn()
        except Exception as e:
            self.record_failure()
            logger.error("%s call failed: %s", self.label, e)
            return fallback()
        self.record_success()
        return result
