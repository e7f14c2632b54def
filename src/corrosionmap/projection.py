"""Planar map projections matching the CRS of the map view.

Raster clipping must use the same projection as the map that displays the
overlay; otherwise the clip outline and the image drift apart.
"""

import numpy as np
from pyproj import Transformer

EARTH_RADIUS_M = 6378137.0
MAX_MERCATOR_LAT = 85.0511287798


class Projection:
    """Geographic (lat, lon) → planar (x, y) for one Leaflet CRS.

    Args:
        name: Leaflet/folium CRS name, e.g. "EPSG3857".
        target_crs: pyproj CRS string of the planar coordinates.
        max_lat: Latitudes are clamped to ±max_lat before projecting.
    """

    def __init__(self, name: str, target_crs: str, max_lat: float = 90.0):
        self.name = name
        self.max_lat = max_lat
        self._transformer = Transformer.from_crs("EPSG:4326", target_crs, always_xy=True)

    def project(self, lat: float, lon: float) -> tuple[float, float]:
        x, y = self._transformer.transform(lon, max(-self.max_lat, min(self.max_lat, lat)))
        return float(x), float(y)

    def project_many(self, lats, lons) -> tuple[np.ndarray, np.ndarray]:
        lats = np.clip(np.asarray(lats, dtype=np.float64), -self.max_lat, self.max_lat)
        lons = np.asarray(lons, dtype=np.float64)
        x, y = self._transformer.transform(lons, lats)
        return np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64)

    def __repr__(self) -> str:
        return f"Projection({self.name!r})"


# Spherical Mercator, the default Leaflet CRS
WEB_MERCATOR = Projection("EPSG3857", "EPSG:3857", max_lat=MAX_MERCATOR_LAT)
# Leaflet's EPSG4326 is plate carrée: x = lon, y = lat
EQUIRECTANGULAR = Projection("EPSG4326", "EPSG:4326")

_BY_CRS: dict[str, Projection] = {
    "EPSG3857": WEB_MERCATOR,
    "EPSG900913": WEB_MERCATOR,
    "EPSG4326": EQUIRECTANGULAR,
}


def projection_for_crs(crs: str) -> Projection:
    """Return the projection for a Leaflet CRS name ("EPSG3857", "EPSG4326", …)."""
    key = crs.replace(":", "").upper()
    try:
        return _BY_CRS[key]
    except KeyError:
        raise ValueError(f"Unsupported map CRS: {crs}") from None
