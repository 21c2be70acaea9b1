"""Fixed-window request limiting per client address."""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from ..engine.exceptions import RateLimitExceeded
from ..schemas.https import ErrorResponse

log = structlog.get_logger(__name__)

RATE_LIMIT_WINDOW_MS = 900000
RATE_LIMIT_MAX = 100
RATE_LIMIT_MESSAGE = "Too many requests, please try again later"


@dataclass(frozen=True)
class RateLimitStatus:
    limit: int
    remaining: int
    reset_after: int  # seconds until the window closes

    def headers(self) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


def client_address(request: Request, trust_proxy: bool = False) -> str:
    """Peer address, or the first ``X-Forwarded-For`` hop when behind a trusted proxy."""
    if trust_proxy:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class FixedWindowRateLimiter:
    """Counts requests per key in windows of ``window_ms`` starting at the first hit."""

    def __init__(
        self,
        window_ms: int = RATE_LIMIT_WINDOW_MS,
        max_requests: int = RATE_LIMIT_MAX,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._clock = clock or time.monotonic
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> RateLimitStatus:
        """
        Count one request for ``key``.

        Raises:
            RateLimitExceeded: If the key already used its window.
        """
        now_ms = self._clock() * 1000
        started, count = self._windows.get(key, (now_ms, 0))
        if now_ms - started >= self.window_ms:
            started, count = now_ms, 0

        reset_after = max(0, int((started + self.window_ms - now_ms + 999) // 1000))
        if count >= self.max_requests:
            log.warning("rate_limit_exceeded", client=key, limit=self.max_requests)
            raise RateLimitExceeded(RATE_LIMIT_MESSAGE, reset_after=reset_after, limit=self.max_requests)

        count += 1
        self._windows[key] = (started, count)
        return RateLimitStatus(limit=self.max_requests, remaining=self.max_requests - count, reset_after=reset_after)

    def prune(self) -> int:
        """Forget windows that have closed."""
        now_ms = self._clock() * 1000
        closed = [key for key, (started, _) in self._windows.items() if now_ms - started >= self.window_ms]
        for key in closed:
            del self._windows[key]
        return len(closed)


def rate_limit_dependency(limiter: FixedWindowRateLimiter, trust_proxy: bool = False):
    """FastAPI dependency enforcing ``limiter``; routes echo the returned headers."""
    async def enforce(request: Request) -> RateLimitStatus:
        return limiter.hit(client_address(request, trust_proxy=trust_proxy))
    return enforce


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content=ErrorResponse(error=RATE_LIMIT_MESSAGE).to_dict(),
        headers={
            "RateLimit-Limit": str(exc.limit),
            "RateLimit-Remaining": "0",
            "RateLimit-Reset": str(exc.reset_after),
            "Retry-After": str(exc.reset_after),
        },
    )
