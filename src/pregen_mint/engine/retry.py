"""
Bounded retry with exponential backoff.

Every call that crosses the process boundary (custodial service, share store,
relay) goes through a ``RetryExecutor``. Budgets are per call: a workflow
that makes several remote calls gives each of them the full attempt count.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

log = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
RETRY_DELAY_MS = 1000

SleepFunc = Callable[[float], Awaitable[Any]]


class RetryExecutor:
    """Runs an async unit of work up to ``max_retries`` times.

    After a failed attempt ``n`` (0-based) the executor waits
    ``base_delay_ms * 2**n`` milliseconds. No jitter is applied and there is
    no wait after the final attempt; the last exception is re-raised as is.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay_ms: int = RETRY_DELAY_MS,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff in milliseconds after the given 0-based attempt."""
        return self.base_delay_ms * (2 ** attempt)

    def _log_retry(self, label: str, context: Dict[str, Any]) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            log.warning(
                "retrying_after_failure",
                label=label,
                attempt=state.attempt_number,
                max_retries=self.max_retries,
                delay_ms=state.next_action.sleep * 1000 if state.next_action else None,
                error=str(state.outcome.exception()) if state.outcome else None,
                **context,
            )
        return before_sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "operation",
        **context: Any,
    ) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.base_delay_ms / 1000, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_retry(label, context),
            reraise=True,
        )
        return await retrying(operation)
