"""Data model definitions shared by ingestion, raster, layer and render code."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class SamplePoint:
    """One geolocated corrosion-rate value. Already normalized from the payload aliases."""

    lat: float  # Latitude (decimal degrees)
    lon: float  # Longitude (decimal degrees)
    value: float  # Corrosion rate (g/m²/yr); NaN when the source value was unusable
    data_points_used: int | None = None  # Observations behind a sparse prediction


@dataclass(frozen=True)
class ColorBin:
    """One severity class of a metal's fixed classification table."""

    label: str  # "C1" … "CX"
    upper_bound: float  # Inclusive upper bound; inf for the open-ended top class
    color: str  # Hex fill color


@dataclass(frozen=True)
class Classification:
    """Result of classifying a single rate."""

    index: int  # Position in the metal's bin table
    label: str
    color: str
    upper_bound: float


@dataclass(frozen=True)
class GeoBounds:
    """Geographic bounding box in degrees."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def as_leaflet(self) -> list[list[float]]:
        """Return [[south, west], [north, east]] as expected by Leaflet/folium."""
        return [[self.min_lat, self.min_lon], [self.max_lat, self.max_lon]]

    def overlaps(self, other: "GeoBounds") -> bool:
        return not (
            self.max_lat < other.min_lat
            or self.min_lat > other.max_lat
            or self.max_lon < other.min_lon
            or self.min_lon > other.max_lon
        )


@dataclass(frozen=True)
class RasterImage:
    """Georeferenced RGBA image built from a dense grid.

    Row 0 is the northernmost sample row. Each pixel covers the cell centred
    on its sample, so ``bounds`` extend half a resolution past the outer samples.
    """

    pixels: np.ndarray  # uint8, shape (rows, cols, 4)
    bounds: GeoBounds
    resolution: float  # Lattice step in degrees
    value_min: float  # Observed range, for legends
    value_max: float

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.pixels.shape[0]), int(self.pixels.shape[1])


@dataclass(frozen=True)
class BoundaryPolygon:
    """Clip/mask outline. Rings of (lat, lon) vertices, implicitly closed."""

    rings: tuple[tuple[tuple[float, float], ...], ...]

    @property
    def is_empty(self) -> bool:
        return not any(len(ring) >= 3 for ring in self.rings)

    @property
    def bounds(self) -> GeoBounds | None:
        vertices = [v for ring in self.rings for v in ring]
        if not vertices:
            return None
        lats = [v[0] for v in vertices]
        lons = [v[1] for v in vertices]
        return GeoBounds(min(lats), max(lats), min(lons), max(lons))


@dataclass(frozen=True)
class KernelLayerState:
    """On-screen kernel geometry for the current view."""

    radius_px: int
    blur_px: int
    zoom: int
    center_lat: float
