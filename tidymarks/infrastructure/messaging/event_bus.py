"""In-memory event bus for bookmark store notifications.

Store adapters publish :mod:`tidymarks.domain.events.bookmark_events`; the
ingest coordinator subscribes to them. Handlers run in subscription order and
a failing handler never stops the others.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tidymarks.domain.events.bookmark_events import DomainEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=DomainEvent)

EventHandler = Callable[[TEvent], Awaitable[None]]


class EventBus:
    """Publish/subscribe dispatcher keyed by event type.

    Example:
        ```python
        bus = EventBus()

        async def on_created(event: BookmarkCreated) -> None:
            print(event.bookmark_id)

        bus.subscribe(BookmarkCreated, on_created)
        await bus.publish(BookmarkCreated(occurred_at=now, bookmark_id="42"))
        ```

    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": getattr(handler, "__name__", repr(handler)),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

    def unsubscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            logger.warning(
                "event_handler_not_found",
                extra={
                    "event_type": event_type.__name__,
                    "handler": getattr(handler, "__name__", repr(handler)),
                },
            )
            return
        handlers.remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        """Deliver ``event`` to every handler subscribed to its exact type.

        Args:
            event: The domain event to publish.

        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(
                "event_published_no_handlers",
                extra={"event_type": event_type.__name__, "event_id": event.aggregate_id},
            )
            return

        logger.debug(
            "event_published",
            extra={
                "event_type": event_type.__name__,
                "event_id": event.aggregate_id,
                "handler_count": len(handlers),
            },
        )

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": getattr(handler, "__name__", repr(handler)),
                        "error": str(exc),
                    },
                )

    def get_handler_count(self, event_type: type[TEvent]) -> int:
        return len(self._handlers.get(event_type, []))

    def clear_handlers(self) -> None:
        self._handlers.clear()
