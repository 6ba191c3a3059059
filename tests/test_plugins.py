import json
import logging
from types import SimpleNamespace

import pytest

from config import Config
from geometry_utils.geopoint import GeoPoint
from plugin_registry import (
    available_renderers,
    get_chunk_fetcher,
    get_renderer,
    get_timer_service,
    load_plugins_from_config,
    register_renderer,
)
from rendering import HeadlessRenderer
from timers import ManualTimerService
import chunkLoader


def test_builtin_collaborators_are_registered() -> None:
    assert isinstance(get_renderer("Headless"), HeadlessRenderer)
    assert isinstance(get_timer_service("manual"), ManualTimerService)
    fetcher = get_chunk_fetcher("file", {"data_dir": "somewhere"})
    assert isinstance(fetcher, chunkLoader.FileChunkFetcher)
    assert str(fetcher.base_dir) == "somewhere"
    assert get_renderer("missing") is None
    assert get_timer_service(None) is None


def test_register_renderer_factory_receives_settings() -> None:
    seen = {}

    def factory(settings):
        seen.update(settings)
        return HeadlessRenderer(settings)

    register_renderer("recording", factory)
    assert "recording" in available_renderers()
    renderer = get_renderer("recording", {"draw_lines": False})
    assert renderer.settings == {"draw_lines": False}
    assert seen == {"draw_lines": False}


def test_missing_plugin_module_is_logged(caplog) -> None:
    config = Config(new_data={"plugins": ["no_such_module_here"]})
    with caplog.at_level(logging.ERROR, logger="replay.plugins"):
        load_plugins_from_config(config)
    assert "no_such_module_here" in caplog.text


def test_geojson_plugin_exports_traces(tmp_path) -> None:
    config = Config(new_data={"replay": {"plugins": ["plugins.examples.geojson_export_plugin"]}})
    load_plugins_from_config(config)
    renderer = get_renderer("geojson")

    start, end = GeoPoint(11.55, 48.13), GeoPoint(11.56, 48.14)
    trace = renderer.create_trace(start.coords())
    trace.append_point(end.coords())
    renderer.create_trace(end.coords())
    renderer.create_marker(SimpleNamespace(id=1), start.coords())

    path = renderer.export(tmp_path / "traces.geojson")
    document = json.loads(path.read_text(encoding="utf-8"))

    assert document["type"] == "FeatureCollection"
    assert len(document["features"]) == 1
    coordinates = document["features"][0]["geometry"]["coordinates"]
    assert coordinates[0] == pytest.approx([11.55, 48.13], abs=1e-6)
    assert coordinates[1] == pytest.approx([11.56, 48.14], abs=1e-6)
