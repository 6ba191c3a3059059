# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Collaborator interfaces used by the replay core.

The core never draws, fetches or sleeps by itself: it talks to a
renderer, a chunk fetcher and a timer service through the protocols
below. Concrete implementations are registered in `plugin_registry`
so the application only ever asks for them by name.
"""

from typing import Any, Callable, Protocol, Tuple

Coords = Tuple[float, float]


class Marker(Protocol):
    """
    Visual handle for a single entity.

    Coordinates are projected (web-mercator) pairs; the renderer is free
    to map them to screen space however it likes.
    """
    def show(self) -> None:
        """Make the marker visible."""

    def hide(self) -> None:
        """Hide the marker."""

    def move_to(self, coords: Coords) -> None:
        """Place the marker at `coords`."""


class PathTrace(Protocol):
    """
    Polyline following an entity.

    Animation appends one point per move and then keeps overwriting the
    last point, so the line always ends where the marker is drawn.
    """
    def append_point(self, coords: Coords) -> None:
        """Append a new end point."""

    def update_last_point(self, coords: Coords) -> None:
        """Overwrite the current end point."""


class Renderer(Protocol):
    """Factory for markers and traces."""
    def create_marker(self, entity: Any, coords: Coords) -> Marker:
        """Create a marker for `entity` at `coords`."""

    def create_trace(self, coords: Coords) -> PathTrace:
        """Create a trace starting at `coords`."""

    def clear_traces(self) -> None:
        """Reset every trace to its current end point."""


class TimerHandle(Protocol):
    """Cancellable scheduled callback."""
    active: bool

    def cancel(self) -> None:
        """Stop the callback from firing again."""


class TimerService(Protocol):
    """
    Wall-clock scheduling used for the tick loop, animations and deferred loads.

    Every callback is delivered on the same thread, one at a time.
    """
    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke `callback` every `interval_ms` until cancelled."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke `callback` once after `delay_ms`."""


class ChunkFetcher(Protocol):
    """Transport for manifest and chunk payloads."""
    def fetch_json(self, name: str) -> Any:
        """Return the decoded JSON document called `name`."""
