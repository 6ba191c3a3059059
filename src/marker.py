# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Marker: interpolated position updates for one entity."""
from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

from geometry_utils.geopoint import GeoPoint
from plugin_base import Renderer, TimerHandle, TimerService

logger = logging.getLogger("replay.marker")


class Marker:
    """
    Animation controller bound to a single entity.

    A move either lands instantly or is split into `ticks` sub-steps spread
    over `duration * speed / step_size` milliseconds of wall-clock time.
    Only one move can be in flight at a time.
    """

    def __init__(self, entity: Any, position: GeoPoint, renderer: Renderer, timers: TimerService, settings):
        """Initialize the instance."""
        self.entity = entity
        self.position = position
        self.settings = settings
        self.timers = timers
        self.coords = np.array(position.projected, dtype=float)
        self.is_moving = False
        self.is_hidden: Optional[bool] = None
        self._timer: Optional[TimerHandle] = None
        self._path: Optional[np.ndarray] = None
        self._target: Optional[GeoPoint] = None
        self.tick_count = 0
        self.total_ticks = 0
        start = self._as_tuple(self.coords)
        self._marker = renderer.create_marker(entity, start) if settings.draw_markers else None
        self._trace = renderer.create_trace(start) if settings.draw_lines else None
        self.hide()

    @staticmethod
    def _as_tuple(coords: np.ndarray) -> tuple:
        return (float(coords[0]), float(coords[1]))

    def hide(self) -> None:
        """Hide the marker."""
        if self.is_hidden:
            return
        if self._marker is not None:
            self._marker.hide()
        self.is_hidden = True

    def show(self) -> None:
        """Show the marker."""
        if not self.is_hidden:
            return
        if self._marker is not None:
            self._marker.show()
        self.is_hidden = False

    def move(self, target: GeoPoint, duration: float) -> bool:
        """
        Move towards `target` over `duration` simulated seconds.

        Returns False (and does nothing) while a previous move is still
        running. Zero or negative durations, and a speed of 1 ms per tick,
        place the marker immediately.
        """
        if self.is_moving:
            return False
        source = self.coords.copy()
        destination = np.array(target.projected, dtype=float)
        if self._trace is not None:
            # New end point, dragged along by every interpolation tick.
            self._trace.append_point(self._as_tuple(source))
        if duration <= 0 or self.settings.speed == 1:
            self._place(destination)
            self.position = target
            return True
        ticks = self.settings.ticks
        fractions = np.arange(1, ticks + 1, dtype=float) / ticks
        self._path = source + np.outer(fractions, destination - source)
        self._path[-1] = destination
        self._target = target
        self.tick_count = 0
        self.total_ticks = ticks
        self.is_moving = True
        interval = duration * self.settings.speed / self.settings.step_size / ticks
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Entity %s moving to %s over %s s (%d ticks every %.2f ms)",
                getattr(self.entity, "id", "?"), target, duration, ticks, interval
            )
        self._timer = self.timers.call_every(interval, self._advance)
        return True

    def _advance(self) -> None:
        """Render the next interpolation sub-step."""
        if not self.is_moving or self._path is None:
            return
        self.tick_count += 1
        self._place(self._path[self.tick_count - 1])
        if self.tick_count >= self.total_ticks:
            self._finish()

    def _finish(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.is_moving = False
        self.position = self._target
        self._path = None
        self._target = None

    def _place(self, coords: np.ndarray) -> None:
        self.coords = np.array(coords, dtype=float)
        point = self._as_tuple(self.coords)
        if self._marker is not None:
            self._marker.move_to(point)
        if self._trace is not None:
            self._trace.update_last_point(point)

    def cancel(self) -> None:
        """Abort an in-flight move, leaving the marker where it was last drawn."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.is_moving:
            self.is_moving = False
            self._path = None
            self._target = None
