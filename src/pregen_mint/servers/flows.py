"""
Built-in event handlers for the mint workflow.

Implements the request pipeline:
validation → cache lookup → circuit breaker → session pre-flight → mint.

Breaker and cache updates happen inside the handlers, before the result
event is returned, so no later stage can observe a stale breaker.
"""

import structlog

from ..engine.cache import cache_key
from ..engine.events import (
    CircuitOpenEvent,
    Dependencies,
    EventBus,
    IdentifierResolvedEvent,
    MintAdmittedEvent,
    MintCompletedEvent,
    MintFailedEvent,
    MintRequestEvent,
    ValidationFailedEvent,
)
from ..engine.exceptions import ErrorKind, MintServiceError, ServiceInitError, ValidationError, classify
from ..engine.validation import validate_identifier

log = structlog.get_logger(__name__)


def _describe(error: BaseException) -> str:
    if isinstance(error, MintServiceError):
        return error.describe()
    return str(error) or type(error).__name__


# ==================== Event Handlers ====================

async def handle_mint_request(
    event: MintRequestEvent,
    deps: Dependencies,
) -> IdentifierResolvedEvent | ValidationFailedEvent:
    """Validate and normalize the identifier."""
    try:
        identifier, kind = validate_identifier(event.email, event.phone)
    except ValidationError as e:
        log.info("mint_request_rejected", reason=e.message)
        return ValidationFailedEvent(error_message=e.message)
    return IdentifierResolvedEvent(identifier=identifier, kind=kind)


async def handle_identifier_resolved(
    event: IdentifierResolvedEvent,
    deps: Dependencies,
) -> MintCompletedEvent | CircuitOpenEvent | MintFailedEvent | MintAdmittedEvent:
    """Short-circuit on cache hits and open breakers, then check custody."""
    cached = deps.cache.get(cache_key(event.identifier))
    if cached is not None:
        log.info("mint_cache_hit", identifier=event.identifier)
        return MintCompletedEvent(result=cached, cached=True)

    if deps.breaker.is_circuit_open():
        log.warning("mint_rejected_circuit_open", identifier=event.identifier)
        return CircuitOpenEvent(retry_after=deps.settings.retry_after_seconds)

    try:
        await deps.orchestrator.initialize_session()
    except ServiceInitError as e:
        log.error("preflight_initialization_failed", identifier=event.identifier, error=_describe(e))
        return MintFailedEvent(
            kind=ErrorKind.SERVICE_INIT,
            error_message=_describe(e),
            error=e,
            preflight=True,
        )

    return MintAdmittedEvent(identifier=event.identifier, kind=event.kind)


async def handle_mint_admitted(
    event: MintAdmittedEvent,
    deps: Dependencies,
) -> MintCompletedEvent | MintFailedEvent:
    """Run the orchestrated mint and update cache and breaker."""
    try:
        result = await deps.orchestrator.mint(event.identifier, event.kind)
    except Exception as e:
        deps.breaker.record_failure()
        kind = classify(e)
        log.error(
            "mint_failed",
            identifier=event.identifier,
            kind=kind.value,
            error_name=type(e).__name__,
            error=_describe(e),
            failures=deps.breaker.failure_count,
        )
        return MintFailedEvent(kind=kind, error_message=_describe(e), error=e)

    deps.cache.set(cache_key(event.identifier), result)
    deps.breaker.reset()
    return MintCompletedEvent(result=result)


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize the event bus with the built-in mint handlers."""
    event_bus = EventBus()
    event_bus.subscribe(MintRequestEvent, handle_mint_request)
    event_bus.subscribe(IdentifierResolvedEvent, handle_identifier_resolved)
    event_bus.subscribe(MintAdmittedEvent, handle_mint_admitted)
    return event_bus
