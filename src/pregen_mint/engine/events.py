"""
Event-driven mint pipeline with typed events.

Events carry their own data, handlers return next events, and the
infrastructure (cache, breaker, orchestrator) is injected separately through
``Dependencies``. A chain ends at an event nobody subscribes to.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from ..schemas.bases import IdentifierKind
from ..schemas.https import MintResult
from .breaker import CircuitBreaker
from .cache import ResponseCache
from .exceptions import ErrorKind
from .orchestrator import MintOrchestrator

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        pass


# ==================== Trigger Events (External) ====================

class MintRequestEvent(BaseModel, BaseEvent):
    """External trigger: raw ``POST /mint`` body."""
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"MintRequestEvent(email={self.email!r}, phone={self.phone!r})"


# ==================== Intermediate Events ====================

class IdentifierResolvedEvent(BaseModel, BaseEvent):
    """Identifier validated and normalized."""
    identifier: str
    kind: IdentifierKind

    def __repr__(self) -> str:
        return f"IdentifierResolvedEvent(identifier={self.identifier!r}, kind={self.kind.value})"


class MintAdmittedEvent(BaseModel, BaseEvent):
    """Not cached, breaker closed and custody reachable: run the mint."""
    identifier: str
    kind: IdentifierKind

    def __repr__(self) -> str:
        return f"MintAdmittedEvent(identifier={self.identifier!r})"


# ==================== Result Events ====================

class ValidationFailedEvent(BaseModel, BaseEvent):
    """Result: the request body did not carry a usable identifier."""
    error_message: str

    def __repr__(self) -> str:
        return f"ValidationFailedEvent(error={self.error_message})"


class CircuitOpenEvent(BaseModel, BaseEvent):
    """Result: rejected without downstream calls while the breaker is open."""
    retry_after: float

    def __repr__(self) -> str:
        return f"CircuitOpenEvent(retry_after={self.retry_after})"


class MintCompletedEvent(BaseModel, BaseEvent):
    """Result: NFT minted, or a cached result replayed."""
    result: MintResult
    cached: bool = False

    def __repr__(self) -> str:
        return f"MintCompletedEvent(identifier={self.result.identifier!r}, cached={self.cached})"


class MintFailedEvent(BaseModel, BaseEvent):
    """Result: the mint could not be completed.

    ``preflight`` marks failures of the session check that runs before the
    orchestrated mint; those are not counted by the breaker.
    """
    kind: ErrorKind
    error_message: str
    error: Optional[Any] = Field(default=None, exclude=True)
    preflight: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"MintFailedEvent(kind={self.kind.value}, error={self.error_message})"


class BreakEvent(BaseModel, BaseEvent):
    """Internal event to break the event chain."""
    break_reason: str = ""

    def __repr__(self) -> str:
        return "BreakEvent()"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    settings: Settings
    cache: ResponseCache
    breaker: CircuitBreaker
    orchestrator: MintOrchestrator


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a side-effect hook for the given event class.
        Hooks run before subscribers and their return value is ignored.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(event_class, []).append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.

        Yields:
            Results from all subscribers as they complete. Yields nothing if
            no subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            yield await coro
