"""Transition lifecycle events.

Every transition that gets past validation emits ``TransitionStart``,
followed by exactly one of ``TransitionSuccess`` or ``TransitionFailure``
(superseded transitions emit neither).

Listeners registered with ``on_start``/``on_success``/``on_error`` run
synchronously while the event is emitted; a start listener can cancel the
transition with ``event.prevent()``. ``subscribe()`` additionally delivers
every event to async consumers through a bounded queue.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from perch.state.types import StateDefinition

logger = logging.getLogger("perch.events")


@dataclass(slots=True)
class TransitionStart:
    """Emitted before any dependency is resolved. Cancellable."""

    to: StateDefinition
    to_params: Mapping[str, Any]
    from_: StateDefinition
    from_params: Mapping[str, Any]
    prevented: bool = field(default=False, init=False)

    def prevent(self) -> None:
        """Cancel the transition. The active state is left untouched."""
        self.prevented = True


@dataclass(frozen=True, slots=True)
class TransitionSuccess:
    """Emitted after the new state has been committed."""

    to: StateDefinition
    to_params: Mapping[str, Any]
    from_: StateDefinition
    from_params: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class TransitionFailure:
    """Emitted when resolving the destination failed."""

    to: StateDefinition
    to_params: Mapping[str, Any]
    from_: StateDefinition
    from_params: Mapping[str, Any]
    reason: BaseException


TransitionEvent = TransitionStart | TransitionSuccess | TransitionFailure


class TransitionEventBus:
    """Dispatches transition events to listeners and subscribers.

    Usage::

        bus = router.events
        bus.on_start(lambda event: event.prevent() if not logged_in() else None)

        async for event in bus.subscribe():
            if isinstance(event, TransitionSuccess):
                redraw()
    """

    __slots__ = ("_listeners", "_queue_size", "_subscribers")

    def __init__(self, queue_size: int = 256) -> None:
        self._listeners: dict[type, list[Callable[[Any], Any]]] = {
            TransitionStart: [],
            TransitionSuccess: [],
            TransitionFailure: [],
        }
        self._subscribers: set[asyncio.Queue[TransitionEvent | None]] = set()
        self._queue_size = queue_size

    def on_start(self, listener: Callable[[TransitionStart], Any]) -> Callable[[], None]:
        """Register a start listener. Returns a function that removes it."""
        return self._add(TransitionStart, listener)

    def on_success(self, listener: Callable[[TransitionSuccess], Any]) -> Callable[[], None]:
        return self._add(TransitionSuccess, listener)

    def on_error(self, listener: Callable[[TransitionFailure], Any]) -> Callable[[], None]:
        return self._add(TransitionFailure, listener)

    def _add(self, kind: type, listener: Callable[[Any], Any]) -> Callable[[], None]:
        listeners = self._listeners[kind]
        listeners.append(listener)

        def remove() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return remove

    def emit(self, event: TransitionEvent) -> None:
        """Deliver *event* to every listener, then to every subscriber.

        A failing listener is logged and does not stop the others.
        """
        for listener in list(self._listeners[type(event)]):
            try:
                listener(event)
            except Exception:
                logger.exception("%s listener failed for %r", type(event).__name__, event.to.name)

        for queue in set(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # Drop event for slow consumers rather than blocking the commit
                pass

    async def subscribe(self) -> AsyncIterator[TransitionEvent]:
        """Subscribe to all transition events.

        The subscription is removed when the iterator exits.
        """
        queue: asyncio.Queue[TransitionEvent | None] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            self._subscribers.discard(queue)

    def close(self) -> None:
        """Signal all subscribers to stop."""
        for queue in self._subscribers:
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
        self._subscribers.clear()
