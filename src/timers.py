# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Deterministic timer service for headless replays.

Time only moves when `advance` is called, which makes the tick loop,
the animations and the deferred chunk loads fully reproducible. The Qt
counterpart used by the viewer lives in `gui.py`.
"""
from __future__ import annotations

import heapq
import itertools
import logging
from typing import Callable, List, Optional, Tuple

from plugin_registry import register_timer_service

logger = logging.getLogger("replay.timers")

MIN_INTERVAL_MS = 1.0


class ManualTimerHandle:
    """Handle returned by `ManualTimerService`."""

    def __init__(self, due: float, interval: Optional[float], callback: Callable[[], None]):
        """Initialize the instance."""
        self.due = due
        self.interval = interval
        self.callback = callback
        self.active = True

    @property
    def periodic(self) -> bool:
        """Return True for `call_every` handles."""
        return self.interval is not None

    def cancel(self) -> None:
        """Stop the callback from firing again."""
        self.active = False


class ManualTimerService:
    """
    Virtual wall clock in milliseconds.

    Callbacks fire in due-time order; callbacks due at the same instant
    fire in scheduling order. A callback may schedule or cancel timers,
    including its own.
    """

    def __init__(self) -> None:
        """Initialize the instance."""
        self.now_ms = 0.0
        self._queue: List[Tuple[float, int, ManualTimerHandle]] = []
        self._seq = itertools.count()

    def _push(self, handle: ManualTimerHandle) -> None:
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> ManualTimerHandle:
        """Invoke `callback` every `interval_ms` until cancelled."""
        interval = max(float(interval_ms), MIN_INTERVAL_MS)
        handle = ManualTimerHandle(self.now_ms + interval, interval, callback)
        self._push(handle)
        return handle

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ManualTimerHandle:
        """Invoke `callback` once after `delay_ms`."""
        handle = ManualTimerHandle(self.now_ms + max(float(delay_ms), 0.0), None, callback)
        self._push(handle)
        return handle

    def advance(self, ms: float) -> int:
        """Move the clock forward by `ms`, firing due callbacks; return how many fired."""
        if ms < 0:
            raise ValueError("Cannot move the timer clock backwards")
        target = self.now_ms + ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self.now_ms = due
            if handle.periodic:
                handle.due = due + handle.interval
                self._push(handle)
            else:
                handle.active = False
            handle.callback()
            fired += 1
        self.now_ms = target
        return fired

    def run_pending(self) -> int:
        """Fire callbacks that are already due."""
        return self.advance(0)

    def pending(self) -> int:
        """Return the number of active timers."""
        return sum(1 for _, _, handle in self._queue if handle.active)

    def next_due(self) -> Optional[float]:
        """Return the due time of the earliest active timer."""
        active = [due for due, _, handle in self._queue if handle.active]
        return min(active) if active else None


register_timer_service("manual", ManualTimerService)
