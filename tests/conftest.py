from types import SimpleNamespace

import pytest

from application import Application
from chunkLoader import MemoryChunkFetcher
from config import ReplaySettings
from marker import Marker
from rendering import HeadlessRenderer
from timers import ManualTimerService
from waypoints import parse_movement


def movement_record(times, lng0=11.55, lat0=48.13, step=0.001):
    return {
        "from": {"time": times[0]},
        "to": {"time": times[-1]},
        "duration": times[-1] - times[0],
        "waypoints": [
            {"time": t, "lng": lng0 + i * step, "lat": lat0 + i * step}
            for i, t in enumerate(times)
        ],
    }


@pytest.fixture
def settings() -> ReplaySettings:
    return ReplaySettings(speed=100, step_size=15)


@pytest.fixture
def timers() -> ManualTimerService:
    return ManualTimerService()


@pytest.fixture
def renderer() -> HeadlessRenderer:
    return HeadlessRenderer()


@pytest.fixture
def make_movement():
    def _make(times, **kwargs):
        return parse_movement(movement_record(times, **kwargs))
    return _make


@pytest.fixture
def make_record():
    return movement_record


@pytest.fixture
def marker_factory(renderer, timers, settings):
    def _factory(entity, position):
        return Marker(entity, position, renderer, timers, settings)
    return _factory


@pytest.fixture
def make_marker(renderer, timers, settings):
    def _make(position, _id=1):
        return Marker(SimpleNamespace(id=_id), position, renderer, timers, settings)
    return _make


@pytest.fixture
def make_app(settings, renderer, timers):
    def _make(documents):
        fetcher = MemoryChunkFetcher(documents)
        app = Application(settings, renderer=renderer, timer_service=timers, fetcher=fetcher)
        return app, fetcher
    return _make
