"""In-process event bus between the engine and whatever renders it.

The engine never knows about the UI; it publishes named events and a
presentation layer subscribes. A failing handler is logged and skipped so
one broken subscriber cannot stall a tick or a trade.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

EventName = Literal[
    "priceUpdated",
    "newsPublished",
    "transactionCompleted",
    "transactionFailed",
]

EVENT_NAMES: tuple[str, ...] = (
    "priceUpdated",
    "newsPublished",
    "transactionCompleted",
    "transactionFailed",
)

Handler = Callable[[Any], None]


class EventBus:
    """Synchronous publish/subscribe keyed by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: EventName, handler: Handler) -> Callable[[], None]:
        """Register *handler* for *event*; returns a function that unsubscribes it."""
        if event not in EVENT_NAMES:
            raise ValueError(
                f"Unknown event '{event}'. Available: {', '.join(EVENT_NAMES)}."
            )
        self._handlers[event].append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return _unsubscribe

    def emit(self, event: EventName, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for '%s' failed.", event)
