"""
Per-service circuit breaker.

A breaker sits CLOSED while its service behaves and trips OPEN once
failure_threshold net failures pile up. After reset_timeout the next
can_request() flips it to HALF_OPEN and lets traffic probe the service:
half_open_requests successes close it again, a single failure reopens it.

While CLOSED, each success heals the failure count by one instead of
clearing it; the count is only fully reset by HALF_OPEN -> CLOSED.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from monitor.config import CIRCUIT_BREAKERS
from monitor.services.errors import CircuitOpenError

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 3  # Failures before opening
    reset_timeout: timedelta = timedelta(seconds=30)  # Time before half-open
    half_open_requests: int = 1  # Successes needed to close from half-open


class CircuitBreaker:
    """
    Circuit breaker implementation for a single service.

    Usage:
        cb = CircuitBreaker("my_service")
        result = await cb.execute(make_request)
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: datetime | None = None
        self._clock = clock

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    @property
    def last_failure_time(self) -> datetime | None:
        return self._last_failure_time

    def can_request(self) -> bool:
        """
        Check if a request is allowed.

        An OPEN circuit whose reset timeout has elapsed moves to HALF_OPEN
        here, and the caller's request goes through as the probe.
        """
        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            if (
                self._last_failure_time is not None
                and self._clock() - self._last_failure_time > self.config.reset_timeout
            ):
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
                logger.info(f"Circuit breaker '{self.name}' transitioned to HALF_OPEN")
                return True
            return False

        # HALF_OPEN: concurrency is bounded by the caller
        return True

    def record_success(self) -> None:
        """Record a successful request."""
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.half_open_requests:
                self._close()
        elif self._state == CircuitState.CLOSED:
            self._failure_count = max(0, self._failure_count - 1)

    def record_failure(self, error: BaseException | None = None) -> None:
        """Record a failed request."""
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                f"Circuit breaker '{self.name}' HALF_OPEN -> OPEN after failure: {error}"
            )
        elif (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self.config.failure_threshold
        ):
            self._state = CircuitState.OPEN
            logger.warning(
                f"Circuit breaker '{self.name}' OPENED after {self._failure_count} failures"
            )

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run fn under circuit breaker protection.

        Raises:
            CircuitOpenError: If the circuit is open (fn is not invoked)
        """
        if not self.can_request():
            raise CircuitOpenError(
                self.name, self.get_time_until_retry().total_seconds()
            )

        try:
            result = await fn()
        except Exception as e:
            self.record_failure(e)
            raise

        self.record_success()
        return result

    def _close(self, reason: str = "recovered") -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = self._success_count = 0
        self._last_failure_time = None
        logger.info(f"Circuit breaker '{self.name}' CLOSED ({reason})")

    def reset(self) -> None:
        """Manually force the breaker back to CLOSED."""
        self._close("manual reset")

    def get_time_until_retry(self) -> timedelta:
        """Get time until an OPEN circuit lets a probe request through."""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return timedelta(0)

        elapsed = self._clock() - self._last_failure_time
        return max(timedelta(0), self.config.reset_timeout - elapsed)

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failures": self._failure_count,
            "time_until_retry": self.get_time_until_retry().total_seconds(),
        }


class CircuitBreakerRegistry:
    """
    Registry holding one circuit breaker per service.

    Every code path hitting the same service shares its breaker, so failures
    seen by a background fetch also protect user-triggered requests.

    Usage:
        registry = CircuitBreakerRegistry.with_defaults()
        cb = registry.get("markets")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock

    @classmethod
    def with_defaults(
        cls, clock: Callable[[], datetime] = datetime.now
    ) -> "CircuitBreakerRegistry":
        """Create a registry pre-populated with the per-service presets."""
        registry = cls(clock=clock)
        for name, (threshold, reset_timeout) in CIRCUIT_BREAKERS.items():
            registry.get(
                name,
                CircuitBreakerConfig(
                    failure_threshold=threshold, reset_timeout=reset_timeout
                ),
            )
        return registry

    def get(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker for a service."""
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name,
                config or self._default_config,
                clock=self._clock,
            )
        return self._breakers[name]

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {name: cb.get_status() for name, cb in self._breakers.items()}

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for cb in self._breakers.values():
            cb.reset()
        logger.info(f"Reset {len(self._breakers)} circuit breakers")

    def reset(self, name: str) -> bool:
        """Reset a specific circuit breaker."""
        if name in self._breakers:
            self._breakers[name].reset()
            return True
        return False

    def get_open_circuits(self) -> list[str]:
        """Get list of services with open circuits."""
        return [
            name
            for name, cb in self._breakers.items()
            if cb.state == CircuitState.OPEN
        ]
