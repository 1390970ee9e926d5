"""
Circuit breaker for calls to external collaborators.
Stops hammering the record store or the LLM once they are failing, so a
chat turn degrades immediately instead of waiting on a dead backend.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitBreakerOpenError(RuntimeError):
    """Raised when circuit breaker blocks execution."""


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    CLOSED -> OPEN after ``failure_threshold`` failures in a row,
    OPEN -> HALF_OPEN once ``timeout`` seconds have passed,
    HALF_OPEN -> CLOSED on the next success, or back to OPEN on failure.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        name: str = "CircuitBreaker",
        clock: Callable[[], float] = time.time,
    ):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self.clock = clock

        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = None

        logger.info(
            f"CircuitBreaker '{name}' initialized: "
            f"threshold={failure_threshold}, timeout={timeout}s"
        )

    def _before_call(self):
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                logger.info(f"CircuitBreaker '{self.name}': OPEN -> HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
            else:
                raise CircuitBreakerOpenError(
                    f"CircuitBreaker '{self.name}' is OPEN. Service unavailable."
                )

    def _on_success(self):
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"CircuitBreaker '{self.name}': HALF_OPEN -> CLOSED")
        self._reset()

    def _on_failure(self, error: BaseException):
        self._record_failure()
        logger.error(
            f"CircuitBreaker '{self.name}' failure "
            f"({self.failure_count}/{self.failure_threshold}): {str(error)}"
        )

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run a synchronous callable under the breaker."""
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    async def call_async(self, func: Callable[..., Awaitable], *args, **kwargs) -> Any:
        """Await a coroutine function under the breaker; timeouts count as failures."""
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _record_failure(self):
        """Record a failure and potentially open circuit."""
        self.failure_count += 1
        self.last_failure_time = self.clock()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning(f"CircuitBreaker '{self.name}': {self.state.name} -> OPEN")
            self.state = CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        """Check if enough time has passed to attempt recovery."""
        if self.last_failure_time is None:
            return True

        elapsed = self.clock() - self.last_failure_time
        return elapsed >= self.timeout

    def _reset(self):
        """Reset circuit breaker to normal operation."""
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = None

    def get_state(self) -> dict:
        """Get current circuit breaker state for monitoring."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time,
        }
