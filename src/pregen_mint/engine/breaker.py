"""Process-wide circuit breaker guarding the mint pathway."""

import time
from typing import Callable, Optional

import structlog

from ..schemas.bases import CircuitBreakerState

log = structlog.get_logger(__name__)

CIRCUIT_BREAKER_THRESHOLD = 10
CIRCUIT_BREAKER_RESET_TIME_MS = 300000


class CircuitBreaker:
    """Fail-fast guard with two states, CLOSED and OPEN.

    The breaker opens once more than ``threshold`` failures were recorded
    since the last reset. It closes again, without a half-open probe, the
    first time its status is checked after ``reset_timeout_ms`` has passed
    since the most recent failure. A successful mint resets it immediately.
    """

    def __init__(
        self,
        threshold: int = CIRCUIT_BREAKER_THRESHOLD,
        reset_timeout_ms: int = CIRCUIT_BREAKER_RESET_TIME_MS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.threshold = threshold
        self.reset_timeout_ms = reset_timeout_ms
        self._clock = clock or time.time
        self._failures = 0
        self._last_failure = self._now_ms()
        self._is_open = False

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def is_circuit_open(self) -> bool:
        if self._is_open:
            if self._now_ms() - self._last_failure > self.reset_timeout_ms:
                log.info("circuit_breaker_closed", failures=self._failures)
                self.reset()
                return False
            return True
        return False

    def record_failure(self) -> None:
        self._failures += 1
        self._last_failure = self._now_ms()
        if self._failures > self.threshold and not self._is_open:
            self._is_open = True
            log.warning(
                "circuit_breaker_opened",
                failures=self._failures,
                reset_timeout_ms=self.reset_timeout_ms,
            )

    def reset(self) -> None:
        self._failures = 0
        self._is_open = False

    @property
    def failure_count(self) -> int:
        return self._failures

    def state(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            failure_count=self._failures,
            last_failure=self._last_failure,
            is_open=self._is_open,
        )
