"""In-process publish/subscribe for command activity."""

from collections import defaultdict
from collections.abc import Callable, Coroutine, Iterable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

COMMAND_ISSUED = "command.issued"
COMMAND_COMPLETED = "command.completed"
COMMAND_EVENTS = (COMMAND_ISSUED, COMMAND_COMPLETED)


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_payload(cls, name: str, payload: BaseModel) -> "Event":
        return cls(name=name, data=payload.model_dump())


EventHandler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """Delivers each event to its handlers one at a time, in subscription order.

    A failing handler is logged and skipped; publishers never see the error.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._handlers[event_name].append(handler)

    def subscribe_many(self, event_names: Iterable[str], handler: EventHandler) -> None:
        for name in event_names:
            self.subscribe(name, handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def unsubscribe_many(
        self, event_names: Iterable[str], handler: EventHandler
    ) -> None:
        for name in event_names:
            self.unsubscribe(name, handler)

    def has_subscribers(self, event_name: str) -> bool:
        return bool(self._handlers.get(event_name))

    async def emit(self, event: Event) -> None:
        # snapshot: handlers may unsubscribe while being called
        for handler in list(self._handlers.get(event.name, ())):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "event_handler_error",
                    event_name=event.name,
                    handler_name=getattr(handler, "__name__", repr(handler)),
                )

    async def publish(self, event_name: str, payload: BaseModel) -> None:
        """Emit *payload* as an event, skipping the dump when nobody listens."""
        if not self.has_subscribers(event_name):
            return
        await self.emit(Event.from_payload(event_name, payload))
