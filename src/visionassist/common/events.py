"""In-process event bus connecting the assistant to its presentation surface."""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from visionassist.common.logging import get_logger


@dataclass
class Event:
    """Event message."""

    topic: str
    data: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)


EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """Async pub/sub keyed by dotted topics.

    Subscriptions may use ``*`` for exactly one segment or a trailing ``**``
    for any remainder (``assistant.**``).
    """

    def __init__(self, history_limit: int = 200) -> None:
        self._subscribers: list[tuple[str, EventHandler]] = []
        self._history: list[Event] = []
        self._history_limit = history_limit
        self.logger = get_logger("event_bus")

    async def publish(self, event: Event) -> None:
        """Deliver an event to every matching subscriber.

        A failing handler is logged and does not affect the others.
        """
        self.logger.debug("publishing_event", topic=event.topic, source=event.source)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            del self._history[: -self._history_limit]

        handlers = [h for pattern, h in self._subscribers if topic_matches(event.topic, pattern)]
        if handlers:
            await asyncio.gather(*[self._safe_dispatch(h, event) for h in handlers])

    async def emit(self, topic: str, source: str, **data: Any) -> None:
        """Shorthand for publishing an event built from keyword data."""
        await self.publish(Event(topic=topic, data=data, source=source))

    async def _safe_dispatch(self, handler: EventHandler, event: Event) -> None:
        try:
            await handler(event)
        except Exception as e:
            self.logger.exception(
                "event_handler_error",
                topic=event.topic,
                event_id=event.event_id,
                error=str(e),
            )

    def subscribe(self, pattern: str, handler: EventHandler) -> Callable[[], None]:
        """Register a handler and return a function that removes it."""
        entry = (pattern, handler)
        self._subscribers.append(entry)
        self.logger.debug("subscribed", topic=pattern)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def get_history(self, topic: str | None = None, limit: int = 100) -> list[Event]:
        """Recent events, newest first."""
        events = self._history
        if topic:
            events = [e for e in events if topic_matches(e.topic, topic)]
        return list(reversed(events[-limit:]))

    def clear_history(self) -> None:
        self._history.clear()


def topic_matches(topic: str, pattern: str) -> bool:
    """Check a dotted topic against a subscription pattern."""
    topic_parts = topic.split(".")
    pattern_parts = pattern.split(".")

    for i, part in enumerate(pattern_parts):
        if part == "**":
            return i == len(pattern_parts) - 1 and len(topic_parts) > i
        if i >= len(topic_parts):
            return False
        if part != "*" and part != topic_parts[i]:
            return False

    return len(topic_parts) == len(pattern_parts)
