"""In-process event bus for commerce lifecycle hooks and notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


@dataclass
class _Subscription:
    listener: Listener
    priority: int
    order: int


class EventBus:
    """Named events with prioritized listeners.

    Listeners run in ascending priority, then registration order. A failing
    listener is logged and does not stop the others, so tracking can never
    break the commerce operation that published the event.

    Example:
        bus = EventBus()
        bus.subscribe("order_completed", router.handle_purchase)
        bus.publish("order_completed", 42)
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._counter = 0

    def subscribe(self, event: str, listener: Listener, priority: int = 10) -> None:
        self._counter += 1
        subscriptions = self._subscriptions.setdefault(event, [])
        subscriptions.append(_Subscription(listener, priority, self._counter))
        subscriptions.sort(key=lambda s: (s.priority, s.order))

    def unsubscribe(self, event: str, listener: Listener) -> None:
        subscriptions = self._subscriptions.get(event, [])
        self._subscriptions[event] = [s for s in subscriptions if s.listener != listener]

    def has_listeners(self, event: str) -> bool:
        return bool(self._subscriptions.get(event))

    def publish(self, event: str, *args: Any, **kwargs: Any) -> list[Any]:
        """Call every listener of ``event``.

        Returns:
            Return values of the listeners that completed.
        """
        results = []
        for subscription in list(self._subscriptions.get(event, [])):
            try:
                results.append(subscription.listener(*args, **kwargs))
            except Exception:
                logger.exception(f"Listener for '{event}' failed")
        return results
