# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Application: virtual clock, tick loop and chunk prefetching."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import psutil

from chunkLoader import ChunkDescriptor, ChunkLoader
from config import Config, ReplaySettings
from entity import Entity
from entityManager import EntityManager
from errors import DataFetchError, MalformedChunkError
from eventbus import EventBus, Events
from geometry_utils.geopoint import GeoPoint
from marker import Marker
from plugin_base import ChunkFetcher, Renderer, TimerHandle, TimerService
from plugin_registry import (
    available_chunk_fetchers,
    available_renderers,
    available_timer_services,
    get_chunk_fetcher,
    get_renderer,
    get_timer_service,
)
import rendering  # noqa: F401  # ensure built-in collaborators register themselves
import timers  # noqa: F401

logger = logging.getLogger("replay.application")


class Application:
    """
    Replay scheduler.

    Owns the virtual clock (`counter`, seconds since epoch), wakes due
    entities once per tick and requests the next chunk when the clock
    gets within `lookahead` of its start. Every collaborator is handed
    in (or resolved by name from the plugin registry) so several
    replays can coexist in one process.
    """

    def __init__(
        self,
        settings: Optional[ReplaySettings] = None,
        renderer: Optional[Renderer] = None,
        timer_service: Optional[TimerService] = None,
        fetcher: Optional[ChunkFetcher] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        """Initialize the instance."""
        self.settings = settings or ReplaySettings()
        self.bus = bus or EventBus()
        self.timers = timer_service or self._resolve(
            get_timer_service(self.settings.timer), "timer service", self.settings.timer, available_timer_services
        )
        self.renderer = renderer or self._resolve(
            get_renderer(self.settings.renderer, self.settings.as_dict()), "renderer", self.settings.renderer, available_renderers
        )
        fetcher = fetcher or self._resolve(
            get_chunk_fetcher(self.settings.fetcher, self.settings.as_dict()), "chunk fetcher", self.settings.fetcher, available_chunk_fetchers
        )
        self.loader = ChunkLoader(fetcher)
        self.entity_manager = EntityManager(self._create_marker, merge_order=self.settings.merge_order)
        self._counter = 0
        self._tick_handle: Optional[TimerHandle] = None
        self._load_handle: Optional[TimerHandle] = None
        self.ticks_elapsed = 0

    @classmethod
    def from_config(cls, config: Config, **collaborators) -> "Application":
        """
        Build an application from a parsed config file.

        A renderer resolved by name receives the replay settings plus the
        `gui` section (scene center and scale for the "2D" renderer).
        """
        settings = config.parse_replay()
        if collaborators.get("renderer") is None:
            renderer_settings = settings.as_dict()
            renderer_settings["gui"] = config.gui
            collaborators["renderer"] = cls._resolve(
                get_renderer(settings.renderer, renderer_settings), "renderer", settings.renderer, available_renderers
            )
        return cls(settings, **collaborators)

    @staticmethod
    def _resolve(instance: Any, kind: str, name: str, available: Callable[[], dict]) -> Any:
        if instance is None:
            names = ", ".join(sorted(available().keys()))
            raise ValueError(f"{kind.capitalize()} '{name}' is not registered. Available: {names}")
        return instance

    def _create_marker(self, entity: Entity, position: GeoPoint) -> Marker:
        return Marker(entity, position, self.renderer, self.timers, self.settings)

    # ----- Clock --------------------------------------------------------------

    @property
    def lookahead(self) -> float:
        """Virtual seconds ahead of the clock at which the next chunk is requested."""
        return self.settings.lookahead

    @property
    def counter(self) -> int:
        """Return the virtual clock."""
        return self._counter

    @counter.setter
    def counter(self, value: int) -> None:
        """Set the virtual clock, prefetching data and stopping at the end bound."""
        value = int(value)
        if self.is_running and value < self._counter:
            raise ValueError(f"Clock cannot move backwards while running ({value} < {self._counter})")
        self._counter = value
        if self.loader.should_prefetch(self._counter, self.lookahead):
            self._schedule_chunk_load()
        last_time = self.loader.last_time
        if last_time is not None and last_time > 0 and self._counter >= last_time:
            if self.is_running:
                logger.info("Reached end of data at %s", last_time)
            self.stop()

    @property
    def last_counter(self) -> Optional[int]:
        """Return the end bound of the replay, once known."""
        return self.loader.last_time

    @property
    def is_running(self) -> bool:
        """Return True while the tick loop is active."""
        return self._tick_handle is not None

    def tick(self) -> None:
        """Deliver due wakeups, then advance the clock by one step."""
        self.entity_manager.wakeup_due(self._counter)
        self.counter = self._counter + self.settings.step_size
        self.ticks_elapsed += 1
        self.bus.publish(Events.CLOCK, self.time_converter(self._counter))

    def start(self) -> None:
        """Start ticking every `speed` milliseconds."""
        if self.is_running:
            return
        logger.info("Starting replay at %s (step=%s s, interval=%s ms)", self._counter, self.settings.step_size, self.settings.speed)
        self._tick_handle = self.timers.call_every(self.settings.speed, self.tick)
        self.tick()

    def stop(self) -> None:
        """Stop ticking; running animations are left to finish."""
        if self._tick_handle is None:
            return
        self._tick_handle.cancel()
        self._tick_handle = None
        logger.info("Replay stopped at %s", self._counter)

    def step(self) -> None:
        """Run a single tick while stopped."""
        if self.is_running:
            return
        self.tick()

    @staticmethod
    def time_converter(timestamp: int) -> datetime:
        """Return the UTC date for a virtual timestamp."""
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    # ----- Data ---------------------------------------------------------------

    def load_data(self) -> None:
        """
        Fetch the manifest and the first chunk.

        The clock is placed one step before the first chunk starts. Fetch
        and parse errors propagate to the caller.
        """
        descriptors = self.loader.fetch_manifest(self.settings.manifest)
        if not descriptors:
            raise MalformedChunkError(f"Manifest '{self.settings.manifest}' lists no chunks")
        self.loader.reset(descriptors)
        self.counter = descriptors[0].start_time - self.settings.step_size - 1
        self.load_next_chunk()

    def load_next_chunk(self) -> Optional[ChunkDescriptor]:
        """Fetch the next chunk now and merge it into the entity store."""
        descriptor = self.loader.pop_next()
        if descriptor is None:
            return None
        records = self.loader.fetch(descriptor)
        self.entity_manager.upsert_many(records)
        if self.settings.prune_lag > 0:
            self.prune(self._counter - self.settings.prune_lag)
        self._log_memory(f"after loading {descriptor.file_name}")
        self.bus.publish(Events.LOADED_CHUNK, descriptor)
        return descriptor

    def _schedule_chunk_load(self) -> None:
        if self._load_handle is not None and self._load_handle.active:
            return
        self._load_handle = self.timers.call_later(0, self._deferred_chunk_load)

    def _deferred_chunk_load(self) -> None:
        self._load_handle = None
        if not self.loader.should_prefetch(self._counter, self.lookahead):
            return
        try:
            self.load_next_chunk()
        except (DataFetchError, MalformedChunkError) as exc:
            logger.error("Chunk load failed: %s", exc)
            self.bus.publish(Events.LOAD_FAILED, exc)

    def prune(self, time: int) -> int:
        """Drop waypoints older than `time` from every entity."""
        dropped = self.entity_manager.prune(time)
        if dropped:
            self._log_memory("after prune")
        return dropped

    @staticmethod
    def _log_memory(reason: str) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        rss = psutil.Process().memory_info().rss
        logger.debug("Resident memory %s: %.1f MiB", reason, rss / (1024 * 1024))

    # ----- Observers ----------------------------------------------------------

    def on(self, topic: Events, handler: Callable[[Any], None]) -> None:
        """Subscribe `handler` to `topic`."""
        self.bus.subscribe(topic, handler)

    def select_entity(self, _id: int) -> Optional[Entity]:
        """Publish the selection of entity `_id` (from a click in the viewer)."""
        entity = self.entity_manager.get(_id)
        if entity is not None:
            self.bus.publish(Events.SELECTED_ENTITY, entity)
        return entity

    def clear_lines(self) -> None:
        """Clear the drawn traces; clock and entities are untouched."""
        self.renderer.clear_traces()

    def run_headless(self, max_ticks: Optional[int] = None) -> int:
        """
        Replay to the end on a manual timer service; return the ticks run.

        Animations still running when the clock stops are driven to
        completion before returning.
        """
        advance = getattr(self.timers, "advance", None)
        if advance is None:
            raise RuntimeError("Headless runs need a timer service with 'advance' (use the 'manual' timer)")
        if max_ticks is None and self.loader.last_time is None and len(self.loader) == 0:
            raise RuntimeError("No data loaded and no tick bound given; call load_data() first")
        first_tick = self.ticks_elapsed
        self.start()
        while self.is_running:
            if max_ticks is not None and self.ticks_elapsed - first_tick >= max_ticks:
                self.stop()
                break
            advance(self.settings.speed)
        while any(marker.is_moving for marker in self.entity_manager.markers()):
            advance(self.settings.speed)
        return self.ticks_elapsed - first_tick

    def close(self) -> None:
        """Stop ticking and cancel pending loads and animations."""
        self.stop()
        if self._load_handle is not None:
            self._load_handle.cancel()
            self._load_handle = None
        self.entity_manager.close()
