# ------------------------------------------------------------------------------
#  BikeReplay
# Copyright (c) 2025 Fabio Oddi
#
#  Example plugin: a headless renderer that can dump the drawn traces as a
#  GeoJSON FeatureCollection. Import this module (e.g. add
#  "plugins.examples.geojson_export_plugin" to the `plugins` list in the
#  config) and set `replay.renderer` to `"geojson"`.
# ------------------------------------------------------------------------------

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from geometry_utils.geopoint import unproject
from plugin_registry import register_renderer
from rendering import HeadlessRenderer

logger = logging.getLogger("replay.plugins.geojson")


class GeoJsonRenderer(HeadlessRenderer):
    """
    Headless renderer whose traces can be exported for GIS tools.

    Trace points are stored in web-mercator metres by the core; the export
    converts them back to longitude/latitude pairs.
    """

    def to_geojson(self) -> dict:
        """Return every trace with at least two points as a LineString feature."""
        features = []
        for n, trace in enumerate(self.traces):
            if len(trace.points) < 2:
                continue
            coordinates = []
            for x, y in trace.points:
                point = unproject(x, y)
                coordinates.append([round(point.lng, 6), round(point.lat, 6)])
            features.append({
                "type": "Feature",
                "properties": {"trace": n},
                "geometry": {"type": "LineString", "coordinates": coordinates},
            })
        return {"type": "FeatureCollection", "features": features}

    def export(self, path: str | Path) -> Path:
        """Write the GeoJSON document to `path`."""
        path = Path(path)
        document = self.to_geojson()
        path.write_text(json.dumps(document), encoding="utf-8")
        logger.info("Exported %d traces to %s", len(document["features"]), path)
        return path


def _create_geojson_renderer(settings: Any) -> GeoJsonRenderer:
    """Factory registered in the plugin registry."""
    return GeoJsonRenderer(settings)


register_renderer("geojson", _create_geojson_renderer)
