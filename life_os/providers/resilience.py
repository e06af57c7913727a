"""
Circuit breaker for provider handles.

A provider that keeps failing is skipped (reported as connected=false)
until its cooldown expires, instead of eating its full fetch deadline
on every cycle.
"""

import logging

from ..clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class CircuitBreakerState:
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing if recovered


class CircuitBreaker:
    """
    Circuit breaker to prevent a dead provider from stalling every cycle.

    States:
    - CLOSED: Normal operation, all calls allowed
    - OPEN: Failing, calls rejected immediately
    - HALF_OPEN: Testing recovery, one call allowed
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 300,
        clock: Clock | None = None,
        name: str = "",
    ):
        """
        Args:
            failure_threshold: Number of consecutive failures before opening
            cooldown_seconds: Seconds to wait before attempting recovery
        """
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock or SystemClock()
        self.name = name
        self.failure_count = 0
        self.state = CircuitBreakerState.CLOSED
        self.last_failure_time: float | None = None

    def can_execute(self) -> bool:
        if self.state == CircuitBreakerState.CLOSED:
            return True

        if self.state == CircuitBreakerState.OPEN:
            if self.last_failure_time is not None:
                elapsed = self.clock.monotonic() - self.last_failure_time
                if elapsed >= self.cooldown_seconds:
                    self.state = CircuitBreakerState.HALF_OPEN
                    return True
            return False

        # HALF_OPEN - allow one trial call
        return True

    def record_success(self) -> None:
        if self.state != CircuitBreakerState.CLOSED:
            logger.info(f"Circuit for {self.name or 'provider'} closed")
        self.failure_count = 0
        self.state = CircuitBreakerState.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self.clock.monotonic()
        if self.state == CircuitBreakerState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitBreakerState.OPEN:
                logger.warning(
                    f"Circuit for {self.name or 'provider'} opened after "
                    f"{self.failure_count} failures"
                )
            self.state = CircuitBreakerState.OPEN
