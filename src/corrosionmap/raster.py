"""Dense grid → georeferenced RGBA raster, optionally clipped to a boundary."""

import base64
import dataclasses
import io
import logging
from collections.abc import Iterable
from typing import Any

import numpy as np
from matplotlib import image as mpimg
from matplotlib.path import Path

from corrosionmap.colormap import jet_colors
from corrosionmap.grid import DEFAULT_RESOLUTION, axes, estimate_resolution
from corrosionmap.ingest import ensure_points
from corrosionmap.models import BoundaryPolygon, GeoBounds, RasterImage
from corrosionmap.projection import WEB_MERCATOR, Projection

logger = logging.getLogger(__name__)


def build_raster(
    points: Iterable[Any],
    boundary: BoundaryPolygon | None = None,
    projection: Projection = WEB_MERCATOR,
    default_resolution: float = DEFAULT_RESOLUTION,
) -> RasterImage | None:
    """Rasterize a dense grid of samples into a north-up RGBA image.

    Each distinct latitude becomes a row and each distinct longitude a column.
    Values are normalized by the batch's own min/max and colored with the jet
    ramp; cells without a finite value stay transparent.

    Args:
        points: SamplePoints or raw dense records (field aliases accepted).
        boundary: Optional outline; pixels outside every ring are cleared.
        projection: Projection of the map view that will display the raster.
        default_resolution: Step used when the lattice cannot be inferred.

    Returns:
        RasterImage, or None when there is nothing renderable (no points, or
        no finite values).
    """
    samples = ensure_points(points)
    lats, lons = axes(samples)
    if not lats or not lons:
        return None

    values = np.array([p.value for p in samples], dtype=np.float64)
    finite = np.isfinite(values)
    if not finite.any():
        logger.info("Dense grid has no finite values; no raster built")
        return None
    vmin = float(values[finite].min())
    vmax = float(values[finite].max())
    denom = (vmax - vmin) or 1.0

    height, width = len(lats), len(lons)
    lat_index = {v: i for i, v in enumerate(lats)}
    lon_index = {v: i for i, v in enumerate(lons)}
    # Image rows run top-down while latitude grows northward
    rows = np.array([height - 1 - lat_index[p.lat] for p in samples], dtype=np.intp)
    cols = np.array([lon_index[p.lon] for p in samples], dtype=np.intp)

    colors = jet_colors((values - vmin) / denom)
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[rows[finite], cols[finite]] = colors[finite]

    resolution = estimate_resolution(samples, default_resolution)
    half = resolution / 2
    raster = RasterImage(
        pixels=pixels,
        bounds=GeoBounds(
            min_lat=lats[0] - half,
            max_lat=lats[-1] + half,
            min_lon=lons[0] - half,
            max_lon=lons[-1] + half,
        ),
        resolution=resolution,
        value_min=vmin,
        value_max=vmax,
    )
    if boundary is not None:
        raster = clip_raster(raster, boundary, projection)
    logger.info(
        "Raster %dx%d cells at ~%g° (range %.2f–%.2f)", height, width, resolution, vmin, vmax
    )
    return raster


def clip_raster(
    raster: RasterImage, boundary: BoundaryPolygon, projection: Projection = WEB_MERCATOR
) -> RasterImage:
    """Clear every pixel whose centre lies outside all boundary rings.

    Ring vertices and the raster corners are projected with ``projection`` and
    mapped linearly to pixel space, the same way the map stretches an image
    overlay between its corners. An empty boundary returns the raster as is.
    """
    if boundary.is_empty:
        return raster
    height, width = raster.shape
    b = raster.bounds
    west, north = projection.project(b.max_lat, b.min_lon)
    east, south = projection.project(b.min_lat, b.max_lon)
    span_x, span_y = east - west, north - south
    if span_x <= 0 or span_y <= 0:
        return raster

    cx, cy = np.meshgrid(np.arange(width) + 0.5, np.arange(height) + 0.5)
    centers = np.column_stack([cx.ravel(), cy.ravel()])
    inside = np.zeros(centers.shape[0], dtype=bool)
    for ring in boundary.rings:
        if len(ring) < 3:
            continue
        ring_lats, ring_lons = zip(*ring)
        x, y = projection.project_many(ring_lats, ring_lons)
        verts = np.column_stack([(x - west) / span_x * width, (north - y) / span_y * height])
        path = Path(np.vstack([verts, verts[:1]]), closed=True)
        inside |= path.contains_points(centers)

    pixels = raster.pixels.copy()
    pixels[~inside.reshape(height, width)] = 0
    return dataclasses.replace(raster, pixels=pixels)


def raster_to_png(raster: RasterImage) -> bytes:
    """Encode the raster as an RGBA PNG."""
    buf = io.BytesIO()
    mpimg.imsave(buf, raster.pixels, format="png")
    return buf.getvalue()


def raster_to_data_url(raster: RasterImage) -> str:
    """PNG data URL suitable for an image overlay."""
    encoded = base64.b64encode(raster_to_png(raster)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
