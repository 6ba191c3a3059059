# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Simple runtime registry for replay collaborators.

Renderers, timer services and chunk fetchers are looked up by name, so
the application code only ever calls `get_renderer`, `get_timer_service`
and `get_chunk_fetcher`. External modules can register alternatives by
importing this file and calling the matching `register_*` function.
"""

import logging
from typing import Any, Callable, Dict, Optional
from plugin_base import ChunkFetcher, Renderer, TimerService

logger = logging.getLogger("replay.plugins")

# Internal registry for renderers: name -> factory(settings) -> Renderer
_renderers: Dict[str, Callable[[dict], Renderer]] = {}
# Internal registry for timer services: name -> factory() -> TimerService
_timer_services: Dict[str, Callable[[], TimerService]] = {}
# Internal registry for chunk fetchers: name -> factory(settings) -> ChunkFetcher
_chunk_fetchers: Dict[str, Callable[[dict], ChunkFetcher]] = {}

def _normalize_name(name: str) -> str:
    """Normalize the name."""
    return (name or "").strip().lower()

def register_renderer(name: str, factory: Callable[[dict], Renderer]) -> None:
    """
    Register a new renderer.

    Parameters
    ----------
    name:
        Identifier of the renderer, the same string used in the config
        as `replay.renderer`.
    factory:
        A callable that receives the replay settings and returns an object
        implementing the `Renderer` protocol.
    """
    _renderers[_normalize_name(name)] = factory

def get_renderer(name: str, settings: Optional[dict] = None) -> Optional[Renderer]:
    """
    Return a renderer instance.

    If no renderer is registered under `name`, this function returns None
    and the caller decides how to react.
    """
    factory = _renderers.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(settings or {})

def available_renderers() -> Dict[str, Callable[[dict], Renderer]]:
    """Return the map of registered renderer factories."""
    return dict(_renderers)

def register_timer_service(name: str, factory: Callable[[], TimerService]) -> None:
    """Register a timer service factory."""
    _timer_services[_normalize_name(name)] = factory

def get_timer_service(name: Optional[str]) -> Optional[TimerService]:
    """Return an instantiated timer service."""
    if not name:
        return None
    factory = _timer_services.get(_normalize_name(name))
    if factory is None:
        return None
    return factory()

def available_timer_services() -> Dict[str, Callable[[], TimerService]]:
    """Return the map of registered timer service factories."""
    return dict(_timer_services)

def register_chunk_fetcher(name: str, factory: Callable[[dict], ChunkFetcher]) -> None:
    """Register a chunk fetcher factory."""
    _chunk_fetchers[_normalize_name(name)] = factory

def get_chunk_fetcher(name: Optional[str], settings: Optional[dict] = None) -> Optional[ChunkFetcher]:
    """Return a chunk fetcher instance if registered."""
    if not name:
        return None
    factory = _chunk_fetchers.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(settings or {})

def available_chunk_fetchers() -> Dict[str, Callable[[dict], ChunkFetcher]]:
    """Return the map of registered chunk fetcher factories."""
    return dict(_chunk_fetchers)

def load_plugins_from_config(config: Any) -> None:
    """
    Optional helper that imports plugin modules listed in the config.

    Expected layout (all fields are optional):

    {
      "plugins": ["my_package.my_renderer", ...],
      "replay": {
        "plugins": ["another.plugin.module"]
      }
    }

    Each module is imported for its side effects, typically registration
    of a renderer via `register_renderer`.
    """
    import importlib
    modules = []

    data = getattr(config, "data", None)
    if isinstance(data, dict):
        modules.extend(data.get("plugins", []))
        replay = data.get("replay", {})
        modules.extend(replay.get("plugins", []))

    for mod in modules:
        try:
            importlib.import_module(mod)
        except ImportError as exc:
            # A missing plugin should not prevent the replay from starting.
            logger.error("Failed to import plugin module '%s': %s", mod, exc)
        else:
            logger.info("Loaded plugin module '%s'", mod)
