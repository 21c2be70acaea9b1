"""
Event chain execution engine.

Runs a mint request through the ``EventBus`` by feeding every handler result
back into the bus until no handler answers.
"""

from typing import AsyncGenerator, Optional

from .events import BaseEvent, BreakEvent, Dependencies, EventBus


class EventChain:
    """Executes an event-driven workflow by chaining handler results."""

    def __init__(self, event_bus: EventBus, deps: Dependencies) -> None:
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute the chain starting from ``initial_event``.

        Yields:
            Every event produced by a handler, in the order it was produced.
            The initial event itself is not yielded.
        """
        async for event in self._process_event(initial_event):
            yield event

    async def run_until_terminal(self, initial_event: BaseEvent) -> Optional[BaseEvent]:
        """Drive the chain to completion and return the last event produced."""
        last: Optional[BaseEvent] = None
        async for event in self.execute(initial_event):
            last = event
        return last

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        if isinstance(event, BreakEvent):
            return

        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if not isinstance(result, BaseEvent):
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
            yield result
            async for e in self._process_event(result):
                yield e
