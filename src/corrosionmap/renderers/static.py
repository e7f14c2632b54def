"""Matplotlib static PNG preview of a raster and its boundary."""

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure
from matplotlib.patches import PathPatch
from matplotlib.path import Path as MplPath

from corrosionmap.models import BoundaryPolygon, RasterImage

_ROOT = Path(__file__).parent.parent.parent.parent


def _boundary_path(boundary: BoundaryPolygon) -> MplPath | None:
    """Compound (lon, lat) path with one closed sub-path per ring."""
    verts: list[tuple[float, float]] = []
    codes: list[int] = []
    for ring in boundary.rings:
        if len(ring) < 3:
            continue
        pts = [(lon, lat) for lat, lon in ring]
        verts += pts + [pts[0]]
        codes += [MplPath.MOVETO] + [MplPath.LINETO] * (len(pts) - 1) + [MplPath.CLOSEPOLY]
    if not verts:
        return None
    return MplPath(np.array(verts), codes)


def render_static_raster(
    raster: RasterImage,
    boundary: BoundaryPolygon | None = None,
    chart_size: float = 8,
) -> Figure:
    """Render a raster in plain lon/lat axes.

    With a boundary the image is masked to the outline via a clip path and
    the outline is drawn on top.

    Args:
        raster: Raster from build_raster.
        boundary: Optional outline.
        chart_size: Figure width in inches.

    Returns:
        matplotlib Figure object.
    """
    b = raster.bounds
    aspect = (b.max_lat - b.min_lat) / max(b.max_lon - b.min_lon, 1e-9)
    fig, ax = plt.subplots(figsize=(chart_size, max(2.0, chart_size * aspect)))

    im = ax.imshow(
        raster.pixels,
        extent=(b.min_lon, b.max_lon, b.min_lat, b.max_lat),
        origin="upper",
        interpolation="nearest",
    )

    path = _boundary_path(boundary) if boundary is not None else None
    if path is not None:
        outline = PathPatch(path, facecolor="none", edgecolor="#333333", linewidth=0.8)
        ax.add_patch(outline)
        im.set_clip_path(outline)

    ax.set_xlim(b.min_lon, b.max_lon)
    ax.set_ylim(b.min_lat, b.max_lat)
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(f"Corrosion rate {raster.value_min:.0f}–{raster.value_max:.0f} g/m²/yr")
    return fig


def save_static_raster(
    raster: RasterImage,
    boundary: BoundaryPolygon | None = None,
    output_path: Path | None = None,
) -> Path:
    """Save the raster preview as a PNG file.

    Args:
        raster: Raster from build_raster.
        boundary: Optional outline.
        output_path: Destination path. Auto-generated under results/ if None.

    Returns:
        Path to the saved file.
    """
    if output_path is None:
        b = raster.bounds
        filename = f"raster_{b.min_lat:.2f}_{b.min_lon:.2f}_{raster.resolution:g}.png"
        output_path = _ROOT / "results" / filename

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig = render_static_raster(raster, boundary)
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
