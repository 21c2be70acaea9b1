"""
Test suite for EventChain execution engine.
Tests: 1) Event execution order 2) Hooks run before handlers 3) BreakEvent stops the chain
"""
import pytest

from pregen_mint.engine.breaker import CircuitBreaker
from pregen_mint.engine.cache import ResponseCache
from pregen_mint.engine.events import (
    BreakEvent,
    Dependencies,
    EventBus,
    IdentifierResolvedEvent,
    MintAdmittedEvent,
    MintCompletedEvent,
    MintRequestEvent,
)
from pregen_mint.engine.executors import EventChain
from pregen_mint.schemas.bases import IdentifierKind
from pregen_mint.schemas.https import MintResult


@pytest.fixture
def deps(settings, orchestrator):
    return Dependencies(
        settings=settings,
        cache=ResponseCache(),
        breaker=CircuitBreaker(),
        orchestrator=orchestrator,
    )


async def resolve(event: MintRequestEvent, deps: Dependencies):
    return IdentifierResolvedEvent(identifier=event.email, kind=IdentifierKind.EMAIL)


async def admit(event: IdentifierResolvedEvent, deps: Dependencies):
    return MintAdmittedEvent(identifier=event.identifier, kind=event.kind)


async def complete(event: MintAdmittedEvent, deps: Dependencies):
    return MintCompletedEvent(
        result=MintResult(
            identifier=event.identifier,
            identifier_kind=event.kind,
            wallet_address="0x" + "11" * 20,
            operation_hash="0x" + "22" * 32,
        )
    )


@pytest.mark.asyncio
async def test_events_are_yielded_in_chain_order(deps):
    bus = EventBus()
    bus.subscribe(MintRequestEvent, resolve)
    bus.subscribe(IdentifierResolvedEvent, admit)
    bus.subscribe(MintAdmittedEvent, complete)

    events = [e async for e in EventChain(bus, deps).execute(MintRequestEvent(email="a@b.io"))]

    assert [type(e) for e in events] == [IdentifierResolvedEvent, MintAdmittedEvent, MintCompletedEvent]
    assert events[-1].result.identifier == "a@b.io"


@pytest.mark.asyncio
async def test_run_until_terminal_returns_last_event(deps):
    bus = EventBus()
    bus.subscribe(MintRequestEvent, resolve)

    final = await EventChain(bus, deps).run_until_terminal(MintRequestEvent(email="a@b.io"))

    assert isinstance(final, IdentifierResolvedEvent)


@pytest.mark.asyncio
async def test_hooks_run_before_handlers(deps):
    order = []

    async def hook(event, deps):
        order.append("hook")

    async def handler(event, deps):
        order.append("handler")
        return None

    bus = EventBus()
    bus.hook(MintRequestEvent, hook)
    bus.subscribe(MintRequestEvent, handler)

    final = await EventChain(bus, deps).run_until_terminal(MintRequestEvent(email="a@b.io"))

    assert order == ["hook", "handler"]
    assert final is None


@pytest.mark.asyncio
async def test_break_event_stops_the_chain(deps):
    reached = []

    async def stop(event, deps):
        return BreakEvent(break_reason="stop here")

    async def never(event, deps):
        reached.append(event)

    bus = EventBus()
    bus.subscribe(MintRequestEvent, stop)
    bus.subscribe(BreakEvent, never)

    events = [e async for e in EventChain(bus, deps).execute(MintRequestEvent(email="a@b.io"))]

    assert [type(e) for e in events] == [BreakEvent]
    assert reached == []


@pytest.mark.asyncio
async def test_non_event_result_is_rejected(deps):
    async def bad(event, deps):
        return {"not": "an event"}

    bus = EventBus()
    bus.subscribe(MintRequestEvent, bad)

    with pytest.raises(TypeError, match="unsupported type"):
        await EventChain(bus, deps).run_until_terminal(MintRequestEvent())


def test_subscribe_requires_coroutine():
    bus = EventBus()
    with pytest.raises(TypeError):
        bus.subscribe(MintRequestEvent, lambda event, deps: None)
    with pytest.raises(TypeError):
        bus.hook(MintRequestEvent, lambda event, deps: None)
