# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Entity: a replayed bike and its wakeup state machine."""
import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional

from geometry_utils.geopoint import GeoPoint
from marker import Marker
from waypoints import Movement, WaypointCursor

logger = logging.getLogger("replay.entity")

NO_WAKEUP = -1

MarkerFactory = Callable[["Entity", GeoPoint], Marker]


class EntityState(Enum):
    """Lifecycle of an entity during a replay."""
    UNSEEN = "unseen"
    IDLE = "idle"
    MOVING = "moving"
    FINISHED = "finished"


class Entity:
    """
    Entity.

    Owns the movement history of one bike and decides, at every wakeup,
    whether the next recorded sample is an initial placement, a jump to
    catch up with the clock, an invisible relocation between trips or an
    animated move.
    """

    def __init__(self, _id: int, movements: Iterable[Movement], marker_factory: MarkerFactory, merge_order: str = "arrival"):
        """Initialize the instance."""
        self.id = _id
        self.moves = WaypointCursor(movements, merge_order=merge_order)
        self.marker: Optional[Marker] = None
        self._marker_factory = marker_factory
        self.next_wakeup_time = self.moves.get_next_wakeup()
        self.wakeups = 0

    def get_name(self) -> str:
        """Return the name."""
        return f"bike_{self.id}"

    def add_movements(self, movements: Iterable[Movement]) -> int:
        """Append newly loaded movements to the history."""
        added = self.moves.add_movements(movements)
        if self.marker is None:
            # Not placed yet: a time-ordered merge may have moved the first trip.
            self.next_wakeup_time = self.moves.get_next_wakeup()
        return added

    def is_moving(self) -> bool:
        """Return True while an animation is running."""
        if self.marker is None:
            return False
        return self.marker.is_moving

    @property
    def state(self) -> EntityState:
        """Return the current lifecycle state."""
        if self.next_wakeup_time == NO_WAKEUP and self.moves.has_finished_history():
            return EntityState.FINISHED
        if self.marker is None:
            return EntityState.UNSEEN
        if self.marker.is_moving:
            return EntityState.MOVING
        return EntityState.IDLE

    def is_due(self, now: int) -> bool:
        """Return True if the scheduler should wake this entity at `now`."""
        return 0 < self.next_wakeup_time <= now and not self.is_moving()

    def prune(self, time: int) -> int:
        """Discard waypoints strictly older than `time`; return how many were dropped."""
        dropped = 0
        upcoming = self.moves.peek_next_waypoint()
        while upcoming is not None and upcoming.time < time:
            self.moves.get_next_waypoint()
            dropped += 1
            upcoming = self.moves.peek_next_waypoint()
        return dropped

    def wakeup(self, now: int) -> None:
        """Consume the samples that are due at `now` and act on them."""
        self.wakeups += 1
        if self.moves.has_finished_history():
            self.next_wakeup_time = NO_WAKEUP
            if self.marker is not None:
                self.marker.hide()
            logger.debug("%s finished its history", self.get_name())
            return

        waypoint = self.moves.get_next_waypoint()
        if waypoint is None:
            return

        if self.marker is None:
            self.next_wakeup_time = waypoint.time
            self.marker = self._marker_factory(self, waypoint.position)
            self.marker.show()
            return

        # Behind the clock: jump straight to the latest sample at or before `now`.
        catch_up = False
        upcoming = self.moves.peek_next_waypoint()
        while upcoming is not None and upcoming.time <= now:
            waypoint = self.moves.get_next_waypoint()
            catch_up = True
            upcoming = self.moves.peek_next_waypoint()

        duration = 0 if catch_up else waypoint.time - self.next_wakeup_time
        self.next_wakeup_time = waypoint.time
        if catch_up and logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s caught up to t=%s at clock %s", self.get_name(), waypoint.time, now)

        if self.moves.is_first_waypoint():
            # Between trips: relocate while hidden.
            self.marker.hide()
            self.marker.move(waypoint.position, 0)
        else:
            self.marker.show()
            self.marker.move(waypoint.position, duration)

    def trip_summary(self) -> List[str]:
        """Return one `Trip <n> : <duration>` line per known movement."""
        return [f"Trip {n} : {movement.duration}" for n, movement in enumerate(self.moves.movements, start=1)]

    def __repr__(self) -> str:
        """Return the string representation."""
        return f"Entity({self.id}, state={self.state.value}, next_wakeup={self.next_wakeup_time})"
