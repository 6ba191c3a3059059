# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Recorded movements and the per-entity read cursor.

Raw chunk records are validated here, once, and turned into immutable
`Waypoint`/`Movement` objects; nothing downstream looks at JSON again.
"""
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from errors import MalformedChunkError
from geometry_utils.geopoint import GeoPoint

logger = logging.getLogger("replay.waypoints")

MERGE_ORDERS = ("arrival", "time")


@dataclass(frozen=True)
class Waypoint:
    """One timestamped position sample."""
    time: int
    position: GeoPoint


@dataclass(frozen=True)
class Movement:
    """One continuous trip."""
    start_time: int
    end_time: int
    duration: int
    waypoints: Tuple[Waypoint, ...]

    def __post_init__(self):
        if not self.waypoints:
            raise MalformedChunkError("A movement needs at least one waypoint")

    def __len__(self) -> int:
        return len(self.waypoints)


def _require(record: Any, key: str, where: str) -> Any:
    """Return `record[key]` or raise MalformedChunkError."""
    if not isinstance(record, dict):
        raise MalformedChunkError(f"Expected an object for {where}, got {type(record).__name__}")
    if key not in record:
        raise MalformedChunkError(f"Missing required field '{key}' in {where}")
    return record[key]

def _as_time(value: Any, where: str) -> int:
    """Coerce a JSON number into an integer timestamp."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedChunkError(f"Field 'time' must be a number in {where}")
    if isinstance(value, float):
        if not value.is_integer():
            raise MalformedChunkError(f"Field 'time' must be a whole number of seconds in {where}")
        value = int(value)
    return value

def _as_number(value: Any, key: str, where: str) -> float:
    """Return `value` as float or raise MalformedChunkError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedChunkError(f"Field '{key}' must be a number in {where}")
    return float(value)

def parse_waypoint(record: Any, where: str = "waypoint") -> Waypoint:
    """Parse a `{time, lng, lat}` record."""
    time = _as_time(_require(record, "time", where), where)
    lng = _as_number(_require(record, "lng", where), "lng", where)
    lat = _as_number(_require(record, "lat", where), "lat", where)
    return Waypoint(time, GeoPoint(lng, lat))

def parse_movement(record: Any, where: str = "movement") -> Movement:
    """Parse a `{from, to, duration, waypoints}` record."""
    start_time = _as_time(_require(_require(record, "from", where), "time", f"{where}.from"), f"{where}.from")
    end_time = _as_time(_require(_require(record, "to", where), "time", f"{where}.to"), f"{where}.to")
    duration = _as_number(_require(record, "duration", where), "duration", where)
    raw_waypoints = _require(record, "waypoints", where)
    if not isinstance(raw_waypoints, list):
        raise MalformedChunkError(f"Field 'waypoints' must be a list in {where}")
    waypoints = tuple(
        parse_waypoint(item, f"{where}.waypoints[{n}]") for n, item in enumerate(raw_waypoints)
    )
    return Movement(start_time, end_time, int(duration), waypoints)

def parse_movements(records: Any, where: str = "movements") -> List[Movement]:
    """Parse a list of movement records, skipping `null` entries."""
    if not isinstance(records, list):
        raise MalformedChunkError(f"Field 'movements' must be a list in {where}")
    return [
        parse_movement(item, f"{where}[{n}]")
        for n, item in enumerate(records)
        if item is not None
    ]


class WaypointCursor:
    """
    Ordered movements of one entity plus a read position.

    The cursor walks waypoint by waypoint, rolling into the next movement
    after the last waypoint of the current one. Once it has run past the
    last movement it stays exhausted, even if movements are appended
    afterwards; late movements are kept (for summaries) but never read.
    """

    def __init__(self, movements: Iterable[Movement] = (), merge_order: str = "arrival"):
        """Initialize the instance."""
        if merge_order not in MERGE_ORDERS:
            raise ValueError(f"Invalid merge order '{merge_order}', valid values are {MERGE_ORDERS}")
        self.merge_order = merge_order
        self.movements: List[Movement] = []
        self._movement_index = 0
        self._waypoint_index = 0
        self._last_waypoint_index = -1
        self._finished = False
        self.add_movements(movements)
        self._finished = not self.movements

    def add_movements(self, movements: Iterable[Movement]) -> int:
        """Merge `movements` into the history; return how many were added."""
        added = 0
        for movement in movements:
            if movement is None:
                continue
            if self.merge_order == "time" and not self._finished:
                self._insert_by_time(movement)
            else:
                self.movements.append(movement)
            added += 1
        if added and self._finished:
            logger.debug("%d movements appended to an exhausted history; they will not be replayed", added)
        return added

    def _insert_by_time(self, movement: Movement) -> None:
        """Insert into the unread tail, keeping it sorted by start time."""
        tail_start = self._movement_index + (1 if self._waypoint_index > 0 else 0)
        starts = [m.start_time for m in self.movements[tail_start:]]
        offset = bisect.bisect_right(starts, movement.start_time)
        self.movements.insert(tail_start + offset, movement)

    def get_next_wakeup(self) -> int:
        """Return the start time of the current movement, or -1 when exhausted."""
        if self.has_finished_history():
            return -1
        return self.movements[self._movement_index].start_time

    def is_first_waypoint(self) -> bool:
        """Return True if the last consumed waypoint opened its movement."""
        return self._last_waypoint_index == 0

    def has_finished_history(self) -> bool:
        """Return True once every movement has been read."""
        return self._finished

    def peek_next_waypoint(self) -> Optional[Waypoint]:
        """Return the next waypoint without consuming it."""
        if self.has_finished_history():
            return None
        return self.movements[self._movement_index].waypoints[self._waypoint_index]

    def get_next_waypoint(self) -> Optional[Waypoint]:
        """Consume and return the next waypoint."""
        if self.has_finished_history():
            return None
        movement = self.movements[self._movement_index]
        waypoint = movement.waypoints[self._waypoint_index]
        self._last_waypoint_index = self._waypoint_index
        self._waypoint_index += 1
        if self._waypoint_index >= len(movement.waypoints):
            self._movement_index += 1
            self._waypoint_index = 0
            if self._movement_index >= len(self.movements):
                self._finished = True
        return waypoint

    @property
    def position(self) -> Tuple[int, int]:
        """Return the (movement, waypoint) read indices."""
        return (self._movement_index, self._waypoint_index)

    def remaining(self) -> int:
        """Return the number of waypoints not yet consumed."""
        if self.has_finished_history():
            return 0
        count = len(self.movements[self._movement_index].waypoints) - self._waypoint_index
        for movement in self.movements[self._movement_index + 1:]:
            count += len(movement.waypoints)
        return count

    def __len__(self) -> int:
        return len(self.movements)


