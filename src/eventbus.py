# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Publish/subscribe dispatcher between the replay core and its observers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Hashable, List

logger = logging.getLogger("replay.eventbus")

Handler = Callable[[Any], None]


class Events(Enum):
    """Topics published by the application."""
    CLOCK = "clock"
    LOADED_CHUNK = "loaded_chunk"
    LOAD_FAILED = "load_failed"
    SELECTED_ENTITY = "selected_entity"


class EventBus:
    """
    Synchronous topic-based dispatcher.

    Handlers registered for a topic are invoked in registration order.
    A failing handler is logged and skipped; it never prevents the
    remaining handlers of the same publish from running.
    """

    def __init__(self) -> None:
        """Initialize the instance."""
        self._handlers: Dict[Hashable, List[Handler]] = {}

    def subscribe(self, topic: Hashable, handler: Handler) -> None:
        """Register `handler` for `topic`."""
        if not callable(handler):
            raise TypeError(f"Handler for topic '{topic}' must be callable")
        self._handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: Hashable, handler: Handler) -> bool:
        """Remove the first registration of `handler`; return True if found."""
        handlers = self._handlers.get(topic)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[topic]
        return True

    def publish(self, topic: Hashable, payload: Any = None) -> None:
        """Invoke every handler registered for `topic` with `payload`."""
        handlers = self._handlers.get(topic)
        if not handlers:
            return
        # Snapshot: handlers may (un)subscribe while being dispatched.
        for handler in list(handlers):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler %r for topic %s failed", handler, topic)

    def subscribers(self, topic: Hashable) -> List[Handler]:
        """Return a copy of the handlers registered for `topic`."""
        return list(self._handlers.get(topic, []))

    def clear(self) -> None:
        """Drop every subscription."""
        self._handlers.clear()

    # Shorter names used by the viewer and the examples.
    on = subscribe
    trigger = publish
