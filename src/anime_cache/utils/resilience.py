from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


class CircuitOpenError(RuntimeError):
    """Raised by CircuitBreaker.call while the circuit is open."""


class RateLimitExceeded(RuntimeError):
    def __init__(self, key: str, retry_after: float) -> None:
        super().__init__(f"Rate limit exceeded for {key}. Try again in {retry_after:.1f}s.")
        self.key = key
        self.retry_after = retry_after


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    reset_timeout_seconds: float = 30.0


class CircuitState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> str:
        return self._state

    def _can_attempt(self) -> bool:
        if self._state == CircuitState.OPEN:
            if (self._clock() - self._opened_at) >= self._config.reset_timeout_seconds:
                self._state = CircuitState.HALF_OPEN
                return True
            return False
        return True

    def _on_success(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0

    def _on_failure(self) -> None:
        self._failures += 1
        # a failed half-open probe re-opens immediately
        if self._state == CircuitState.HALF_OPEN or self._failures >= self._config.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()

    def call(self, fn: Callable[[], T], ignore: Tuple[Type[BaseException], ...] = ()) -> T:
        """Run `fn` through the breaker.

        Exceptions listed in `ignore` propagate without counting as failures.
        """
        if not self._can_attempt():
            raise CircuitOpenError("circuit_open")
        try:
            result = fn()
        except ignore:
            raise
        except Exception:
            self._on_failure()
            raise
        else:
            self._on_success()
            return result


class RateLimiter:
    """Sliding-window request limiter keyed by an arbitrary string.

    Callers check `can_make_request` before doing upstream work and
    `record_request` once they commit to it.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}

    def _prune(self, key: str) -> Deque[float]:
        stamps = self._requests.get(key)
        if stamps is None:
            return deque()
        window_start = self._clock() - self._window
        while stamps and stamps[0] <= window_start:
            stamps.popleft()
        if not stamps:
            # idle keys are dropped so the table only holds active windows
            del self._requests[key]
        return stamps

    def can_make_request(self, key: str) -> bool:
        return len(self._prune(key)) < self._max_requests

    def record_request(self, key: str) -> None:
        self._prune(key)
        self._requests.setdefault(key, deque()).append(self._clock())

    def tracked_keys(self) -> int:
        return len(self._requests)

    def request_count(self, key: str) -> int:
        return len(self._prune(key))

    def retry_after(self, key: str) -> float:
        stamps = self._prune(key)
        if len(stamps) < self._max_requests:
            return 0.0
        return max(0.0, stamps[0] + self._window - self._clock())

    def acquire(self, key: str) -> None:
        """Record a request for `key` or raise RateLimitExceeded."""
        if not self.can_make_request(key):
            raise RateLimitExceeded(key, self.retry_after(key))
        self.record_request(key)
