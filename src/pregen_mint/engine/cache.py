"""
Short-TTL response cache.

Successful mint results are stored under ``mint:<identifier>`` so that a
repeated request for an already minted identifier is replayed instead of
re-running the workflow. Values are stored by reference.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

log = structlog.get_logger(__name__)

CACHE_TTL_SECONDS = 3600


def cache_key(identifier: str) -> str:
    return f"mint:{identifier}"


class ResponseCache:
    """In-process TTL cache with a periodic sweep.

    Expired entries are never returned, even when the sweeper has not run yet.
    The sweeper removes them every ``ttl / 30`` seconds.
    """

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock: Optional[Callable[[], float]] = None) -> None:
        self.ttl = ttl
        self.check_period = ttl / 30
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = (value, self._clock() + (self.ttl if ttl is None else ttl))

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    async def run_sweeper(self) -> None:
        """Sweep forever; meant to run as a background task."""
        while True:
            await asyncio.sleep(self.check_period)
            removed = self.sweep()
            if removed:
                log.debug("cache_swept", removed=removed, remaining=len(self._entries))
