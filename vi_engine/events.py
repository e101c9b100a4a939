"""
FieldWatch VI - Event Bus
=========================
Topic based dispatch of state-change events. Selection state is changed by
the stores only; visual updates are handlers subscribed here.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, List, Union

logger = logging.getLogger(__name__)

# Topics
SNAPSHOTS_LOADED = "snapshots_loaded"
SNAPSHOT_SELECTED = "snapshot_selected"
LEGEND_CHANGED = "legend_changed"
TILES_CHANGED = "tiles_changed"
TIMESERIES_CHANGED = "timeseries_changed"
NOTICE = "notice"

Handler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    """Ordered, awaitable publish/subscribe."""

    def __init__(self):
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers[topic].append(handler)

        def unsubscribe():
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

        return unsubscribe

    async def publish(self, topic: str, payload: Any = None) -> None:
        """
        Call every handler of ``topic`` in subscription order.

        Coroutine handlers are awaited. A failing handler is logged and does
        not prevent the remaining handlers from running.
        """
        for handler in list(self._handlers[topic]):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler %r failed for topic %s", handler, topic)

    def clear(self) -> None:
        self._handlers.clear()
