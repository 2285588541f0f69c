"""Circuit breakers for the two blocking dependencies: Supabase and Composio.

Both SDKs are synchronous. ``call_blocking`` runs an SDK call in a worker
thread and records its outcome, so route handlers stay async and a dead
dependency fails fast instead of piling up requests.
"""

import asyncio
import enum
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

from cellsync.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(enum.Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when a call is attempted on an open circuit."""

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name
        super().__init__(f"Circuit breaker is open for {service_name}")


_registry: dict[str, "CircuitBreaker"] = {}
_registry_lock = threading.Lock()


def get_all_circuit_breakers() -> dict[str, "CircuitBreaker"]:
    """Return a snapshot of all registered circuit breakers."""
    with _registry_lock:
        return dict(_registry)


class CircuitBreaker:
    """Consecutive-failure circuit breaker.

    Opens after ``failure_threshold`` consecutive failures. Once
    ``recovery_timeout`` seconds have passed it lets calls through again
    (half-open); the next success closes it, the next failure re-opens it.

    Args:
        service_name: Identifier for the protected service (used in logs).
        failure_threshold: Number of consecutive failures before opening.
        recovery_timeout: Seconds to wait before half-opening.
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
    ) -> None:
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._failures = 0
        self._opened_at = 0.0
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()

        with _registry_lock:
            _registry[service_name] = self

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        with self._lock:
            if (
                self._state == CircuitState.OPEN
                and self.recovery_timeout > 0
                and time.monotonic() - self._opened_at >= self.recovery_timeout
            ):
                self._state = CircuitState.HALF_OPEN
                logger.warning("Circuit breaker HALF_OPEN for %s", self.service_name)
            return self._state

    def check(self) -> None:
        """Raise CircuitBreakerOpen if calls are currently refused."""
        if self.state == CircuitState.OPEN:
            raise CircuitBreakerOpen(self.service_name)

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.warning("Circuit breaker CLOSED for %s (recovered)", self.service_name)
            self._failures = 0
            self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._opened_at = time.monotonic()
            reopen = self._state == CircuitState.HALF_OPEN
            if (reopen or self._failures >= self.failure_threshold) and self._state != CircuitState.OPEN:
                logger.warning(
                    "Circuit breaker OPEN for %s after %d consecutive failures",
                    self.service_name,
                    self._failures,
                )
                self._state = CircuitState.OPEN

    def snapshot(self) -> dict[str, Any]:
        """State summary for the health endpoint."""
        return {
            "service": self.service_name,
            "state": self.state.value,
            "consecutive_failures": self._failures,
        }

    async def call_blocking(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a synchronous SDK call in a worker thread through the breaker.

        Raises:
            CircuitBreakerOpen: If the circuit is open.
            Exception: Whatever ``func`` raised, after recording the failure.
        """
        self.check()
        try:
            result = await asyncio.to_thread(func, *args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


supabase_circuit_breaker = CircuitBreaker("supabase")
composio_circuit_breaker = CircuitBreaker(
    "composio",
    failure_threshold=settings.COMPOSIO_FAILURE_THRESHOLD,
    recovery_timeout=settings.COMPOSIO_RECOVERY_TIMEOUT_SECONDS,
)
