# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import math
import numpy as np

EARTH_RADIUS = 6378137.0
MAX_LATITUDE = 85.0511287798

def project(lng: float, lat: float) -> np.ndarray:
    """Project WGS84 degrees to web-mercator (EPSG:3857) metres."""
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    lng_rad, lat_rad = np.radians([lng, lat])
    x = EARTH_RADIUS * lng_rad
    y = EARTH_RADIUS * np.log(np.tan(math.pi / 4.0 + lat_rad / 2.0))
    return np.array([x, y], dtype=float)

def unproject(x: float, y: float) -> "GeoPoint":
    """Inverse of `project`."""
    lng = math.degrees(x / EARTH_RADIUS)
    lat = math.degrees(2.0 * math.atan(math.exp(y / EARTH_RADIUS)) - math.pi / 2.0)
    return GeoPoint(lng, lat)

class GeoPoint:
    """Geo point."""
    __slots__ = ("_lng", "_lat", "_projected")

    def __init__(self, lng: float, lat: float):
        """Initialize the instance."""
        self._lng = float(lng)
        self._lat = float(lat)
        self._projected = None

    @property
    def lng(self) -> float:
        """Return the longitude in degrees."""
        return self._lng

    @property
    def lat(self) -> float:
        """Return the latitude in degrees."""
        return self._lat

    @property
    def projected(self) -> np.ndarray:
        """Return the web-mercator coordinates (computed once)."""
        if self._projected is None:
            self._projected = project(self._lng, self._lat)
            self._projected.setflags(write=False)
        return self._projected

    def coords(self) -> tuple:
        """Return the projected coordinates as a plain tuple."""
        x, y = self.projected
        return (float(x), float(y))

    def __eq__(self, other):
        """Provide the eq."""
        if not isinstance(other, GeoPoint):
            return NotImplemented
        return self._lng == other._lng and self._lat == other._lat

    def __hash__(self):
        """Provide the hash."""
        return hash((self._lng, self._lat))

    def __repr__(self) -> str:
        """Return the string representation."""
        return f"GeoPoint({self._lng}, {self._lat})"
