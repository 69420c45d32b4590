# chat_relay/infrastructure/event_dispatcher.py
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from chat_relay.domain.events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventDispatcher:
    """Routes domain events to their consumers by event class name.

    Handlers run one after another in registration order. A failing consumer
    is logged and skipped so it cannot keep the others from seeing the event;
    the change that produced the event is already committed at this point.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self.logger = logger or logging.getLogger("ChatRelay.events")

    def register(self, event_type: str, handler: EventHandler) -> None:
        self.handlers[event_type].append(handler)

    async def dispatch(self, event: Event) -> None:
        event_type = event.__class__.__name__
        for handler in list(self.handlers.get(event_type, [])):
            try:
                await handler(event)
            except Exception:
                self.logger.exception(
                    f"Handler {getattr(handler, '__qualname__', handler)!s} "
                    f"failed for {event_type}"
                )
