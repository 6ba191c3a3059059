# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""EntityManager: keyed store of the replayed bikes."""
import logging
from typing import Dict, Iterable, Iterator, List, Optional

from entity import Entity, MarkerFactory
from waypoints import Movement

logger = logging.getLogger("replay.entity_manager")

class EntityManager:
    """Entity manager."""
    def __init__(self, marker_factory: MarkerFactory, merge_order: str = "arrival"):
        """Initialize the instance."""
        self.marker_factory = marker_factory
        self.merge_order = merge_order
        self._entities: Dict[int, Entity] = {}

    def upsert(self, _id: int, movements: Iterable[Movement]) -> Entity:
        """Create the entity for `_id` or merge `movements` into the existing one."""
        entity = self._entities.get(_id)
        if entity is None:
            entity = Entity(_id, movements, self.marker_factory, merge_order=self.merge_order)
            self._entities[_id] = entity
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Created %s with %d movements", entity.get_name(), len(entity.moves))
        else:
            added = entity.add_movements(movements)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Merged %d movements into %s", added, entity.get_name())
        return entity

    def upsert_many(self, records: Iterable) -> int:
        """Upsert `(id, movements)` pairs; return how many were applied."""
        count = 0
        for _id, movements in records:
            self.upsert(_id, movements)
            count += 1
        return count

    def get(self, _id: int) -> Optional[Entity]:
        """Return the entity for `_id`, if known."""
        return self._entities.get(_id)

    def entities(self) -> List[Entity]:
        """Return the entities in insertion order."""
        return list(self._entities.values())

    def wakeup_due(self, now: int) -> int:
        """Wake every entity whose next event is due; return how many woke up."""
        woken = 0
        for entity in self.entities():
            if entity.is_due(now):
                entity.wakeup(now)
                woken += 1
        return woken

    def prune(self, time: int) -> int:
        """Discard waypoints older than `time` from every entity."""
        dropped = 0
        for entity in self._entities.values():
            dropped += entity.prune(time)
        if dropped:
            logger.info("Pruned %d waypoints older than %s", dropped, time)
        return dropped

    def markers(self) -> Iterator:
        """Yield the markers created so far."""
        for entity in self._entities.values():
            if entity.marker is not None:
                yield entity.marker

    def close(self) -> None:
        """Cancel every running animation."""
        for marker in self.markers():
            marker.cancel()
        logger.info("EntityManager closed all animations")

    def __contains__(self, _id) -> bool:
        return _id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.entities())
