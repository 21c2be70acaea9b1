from .apps import MintServer, build_orchestrator
from .limits import FixedWindowRateLimiter

__all__ = [
    "MintServer",
    "build_orchestrator",
    "FixedWindowRateLimiter",
]
