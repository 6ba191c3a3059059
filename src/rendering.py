# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Headless renderer: keeps marker and trace state in memory instead of drawing it."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from plugin_registry import register_renderer

logger = logging.getLogger("replay.rendering")

Coords = Tuple[float, float]


class HeadlessMarker:
    """Marker state without a display."""

    def __init__(self, entity: Any, coords: Coords):
        """Initialize the instance."""
        self.entity = entity
        self.coords = coords
        self.visible = True
        self.moves = 0

    def show(self) -> None:
        """Make the marker visible."""
        self.visible = True

    def hide(self) -> None:
        """Hide the marker."""
        self.visible = False

    def move_to(self, coords: Coords) -> None:
        """Place the marker at `coords`."""
        self.coords = coords
        self.moves += 1


class HeadlessTrace:
    """Polyline stored as a list of points."""

    def __init__(self, coords: Coords):
        """Initialize the instance."""
        self.points: List[Coords] = [coords]

    def append_point(self, coords: Coords) -> None:
        """Append a new end point."""
        self.points.append(coords)

    def update_last_point(self, coords: Coords) -> None:
        """Overwrite the current end point."""
        self.points[-1] = coords


class HeadlessRenderer:
    """Renderer used for batch replays and tests."""

    def __init__(self, settings: dict = None):
        """Initialize the instance."""
        self.settings = settings or {}
        self.markers: Dict[Any, HeadlessMarker] = {}
        self.traces: List[HeadlessTrace] = []

    def create_marker(self, entity: Any, coords: Coords) -> HeadlessMarker:
        """Create a marker for `entity` at `coords`."""
        marker = HeadlessMarker(entity, coords)
        self.markers[getattr(entity, "id", entity)] = marker
        return marker

    def create_trace(self, coords: Coords) -> HeadlessTrace:
        """Create a trace starting at `coords`."""
        trace = HeadlessTrace(coords)
        self.traces.append(trace)
        return trace

    def clear_traces(self) -> None:
        """Drop every trace point, keeping the current end points."""
        for trace in self.traces:
            trace.points[:] = trace.points[-1:]
        logger.debug("Cleared %d traces", len(self.traces))

    def visible_markers(self) -> List[HeadlessMarker]:
        """Return the markers currently shown."""
        return [marker for marker in self.markers.values() if marker.visible]


register_renderer("headless", lambda settings: HeadlessRenderer(settings))
