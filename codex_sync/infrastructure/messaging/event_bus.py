"""In-process event bus for sync lifecycle events.

Listeners are plain callables invoked synchronously, in registration order,
from inside the sync cycle. A listener that raises is logged and skipped so
that a broken status indicator can never abort a sync.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from codex_sync.domain.events.sync_events import SyncEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=SyncEvent)

EventHandler = Callable[[TEvent], None]
Unsubscribe = Callable[[], None]


@dataclass(eq=False)
class _Subscription:
    handler: EventHandler
    event_type: type[SyncEvent] | None

    def matches(self, event: SyncEvent) -> bool:
        return self.event_type is None or isinstance(event, self.event_type)


def _handler_name(handler: Callable[..., object]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventBus:
    """Fan-out of sync events to registered listeners.

    Example:
        ```python
        bus = EventBus()
        unsubscribe = bus.subscribe(lambda event: print(event.name))
        bus.subscribe(on_error, SyncFailed)
        bus.publish(SyncStarted(occurred_at=utc_now(), time=now_ms()))
        unsubscribe()
        ```

    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    def subscribe(
        self,
        handler: EventHandler[TEvent],
        event_type: type[TEvent] | None = None,
    ) -> Unsubscribe:
        """Register a listener and return a handle that removes it.

        Args:
            handler: Callable receiving the event.
            event_type: Only deliver events of this class. ``None`` means all events.

        Returns:
            A zero-argument callable; calling it more than once is harmless.

        """
        subscription = _Subscription(handler=handler, event_type=event_type)
        self._subscriptions.append(subscription)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__ if event_type else "*",
                "handler": _handler_name(handler),
                "total_handlers": len(self._subscriptions),
            },
        )

        def unsubscribe() -> None:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                return
            logger.debug(
                "event_handler_unsubscribed",
                extra={"handler": _handler_name(handler)},
            )

        return unsubscribe

    def publish(self, event: SyncEvent) -> None:
        """Deliver ``event`` to every matching listener.

        Listener failures are logged and do not stop delivery to the rest.
        """
        # Snapshot so listeners may unsubscribe while being notified.
        targets = [sub for sub in self._subscriptions if sub.matches(event)]
        logger.debug(
            "event_published",
            extra={
                "event_type": event.name,
                "handler_count": len(targets),
                "correlation_id": event.correlation_id,
            },
        )

        for subscription in targets:
            try:
                subscription.handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event.name,
                        "handler": _handler_name(subscription.handler),
                        "error": str(exc),
                    },
                )

    def clear_handlers(self) -> None:
        count = len(self._subscriptions)
        self._subscriptions.clear()
        logger.debug("all_event_handlers_cleared", extra={"total_handlers": count})

    def get_handler_count(self, event_type: type[SyncEvent] | None = None) -> int:
        """Count listeners that would receive an event of ``event_type``."""
        if event_type is None:
            return len(self._subscriptions)
        return sum(
            1
            for sub in self._subscriptions
            if sub.event_type is None or issubclass(event_type, sub.event_type)
        )
