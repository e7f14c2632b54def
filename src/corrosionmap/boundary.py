"""Country outline loading for raster clipping and the visual mask."""

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from shapely.errors import ShapelyError
from shapely.geometry import shape as shp_shape

from corrosionmap.models import BoundaryPolygon, GeoBounds

logger = logging.getLogger(__name__)


class BoundaryFetchError(Exception):
    """A single boundary candidate could not be loaded or parsed."""


@dataclass(frozen=True)
class BoundarySource:
    """One candidate location for the boundary GeoJSON."""

    kind: str  # "file" or "url"
    location: str


class BoundaryCache:
    """Session-scoped holder for the loaded outline.

    Written once by the provider and shared read-only by raster clipping and
    the mask layer. ``clear`` belongs to session teardown.
    """

    def __init__(self) -> None:
        self._polygon: BoundaryPolygon | None = None

    @property
    def polygon(self) -> BoundaryPolygon | None:
        return self._polygon

    @property
    def populated(self) -> bool:
        return self._polygon is not None

    def populate(self, polygon: BoundaryPolygon) -> None:
        if self._polygon is not None:
            raise RuntimeError("boundary cache is already populated")
        self._polygon = polygon

    def clear(self) -> None:
        self._polygon = None


def _ring(coords) -> tuple[tuple[float, float], ...]:
    """Exterior (x=lon, y=lat) coords → (lat, lon) vertices without the closing duplicate."""
    ring = [(float(c[1]), float(c[0])) for c in coords]
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    return tuple(ring)


def _outer_rings(geom) -> list[tuple[tuple[float, float], ...]]:
    # Outer rings only; holes are not modeled
    if geom.is_empty:
        return []
    if geom.geom_type == "Polygon":
        return [_ring(geom.exterior.coords)]
    if geom.geom_type in ("MultiPolygon", "GeometryCollection"):
        return [r for g in geom.geoms for r in _outer_rings(g)]
    return []


def _geometry_rings(geometry: Any) -> list[tuple[tuple[float, float], ...]]:
    if not geometry:
        return []
    try:
        geom = shp_shape(geometry)
    # shapely reports malformed coordinates through any of these
    except (ShapelyError, ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
        raise BoundaryFetchError(f"invalid geometry: {e}") from e
    return _outer_rings(geom)


def parse_geojson(obj: Any) -> BoundaryPolygon:
    """Flatten a GeoJSON Polygon/MultiPolygon/Feature/FeatureCollection into rings.

    Raises:
        BoundaryFetchError: If the object is not GeoJSON or holds no polygon.
    """
    if not isinstance(obj, dict):
        raise BoundaryFetchError("GeoJSON root must be an object")
    otype = obj.get("type")
    if otype == "FeatureCollection":
        features = obj.get("features") or []
        if not isinstance(features, list):
            raise BoundaryFetchError("FeatureCollection 'features' must be a list")
        geometries = [f.get("geometry") for f in features if isinstance(f, dict)]
    elif otype == "Feature":
        geometries = [obj.get("geometry")]
    else:
        geometries = [obj]

    rings = [r for g in geometries for r in _geometry_rings(g) if len(r) >= 3]
    if not rings:
        raise BoundaryFetchError(f"no polygon geometry in GeoJSON of type {otype!r}")
    return BoundaryPolygon(rings=tuple(rings))


def _restrict(polygon: BoundaryPolygon, region: GeoBounds | None) -> BoundaryPolygon:
    if region is None:
        return polygon
    kept = tuple(
        ring for ring in polygon.rings if BoundaryPolygon(rings=(ring,)).bounds.overlaps(region)
    )
    if not kept:
        raise BoundaryFetchError("no boundary ring overlaps the target region")
    return BoundaryPolygon(rings=kept)


class BoundaryMaskProvider:
    """Resolve the boundary from an ordered list of candidates, first valid one wins."""

    def __init__(
        self,
        sources: Sequence[BoundarySource],
        cache: BoundaryCache,
        client: httpx.Client | None = None,
        region: GeoBounds | None = None,
        timeout: float = 10.0,
    ):
        self.sources = list(sources)
        self.cache = cache
        self._client = client
        self._region = region
        self._timeout = timeout

    def load(self) -> BoundaryPolygon | None:
        """Return the cached outline, or fetch it from the first working candidate.

        Returns:
            BoundaryPolygon, or None when every candidate failed (clipping and
            masking then become no-ops).
        """
        if self.cache.populated:
            return self.cache.polygon
        for source in self.sources:
            try:
                polygon = _restrict(self._load_source(source), self._region)
            except BoundaryFetchError as e:
                logger.warning("Boundary candidate %s failed: %s", source.location, e)
                continue
            self.cache.populate(polygon)
            logger.info(
                "Boundary loaded from %s (%d ring(s))", source.location, len(polygon.rings)
            )
            return polygon
        logger.warning("No boundary candidate succeeded; layers render unclipped")
        return None

    def _load_source(self, source: BoundarySource) -> BoundaryPolygon:
        if source.kind == "file":
            try:
                text = Path(source.location).read_text(encoding="utf-8")
                data = json.loads(text)
            except (OSError, ValueError) as e:
                raise BoundaryFetchError(str(e)) from e
            return parse_geojson(data)
        if source.kind == "url":
            try:
                if self._client is not None:
                    resp = self._client.get(source.location, timeout=self._timeout)
                else:
                    resp = httpx.get(source.location, timeout=self._timeout, follow_redirects=True)
                resp.raise_for_status()
                data = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                raise BoundaryFetchError(str(e)) from e
            return parse_geojson(data)
        raise BoundaryFetchError(f"unknown source kind: {source.kind}")


def default_sources(
    local_file: str | Path | None,
    api_base_url: str | None,
    server_path: str | None,
    fallback_url: str | None,
) -> list[BoundarySource]:
    """Bundled file → backend-relative path → public dataset, skipping unset entries."""
    sources: Iterable[BoundarySource | None] = (
        BoundarySource("file", str(local_file)) if local_file else None,
        BoundarySource("url", api_base_url.rstrip("/") + "/" + server_path.lstrip("/"))
        if api_base_url and server_path
        else None,
        BoundarySource("url", fallback_url) if fallback_url else None,
    )
    return [s for s in sources if s is not None]
