"""Lattice inference for point sets that do not declare their grid."""

from collections.abc import Sequence

import numpy as np

from corrosionmap.models import SamplePoint

DEFAULT_RESOLUTION = 0.1  # degrees


def axes(points: Sequence[SamplePoint]) -> tuple[tuple[float, ...], tuple[float, ...]]:
    """Return the sorted distinct latitudes and longitudes of a point set."""
    lats = tuple(sorted({p.lat for p in points}))
    lons = tuple(sorted({p.lon for p in points}))
    return lats, lons


def _min_gap(values: Sequence[float]) -> float:
    if len(values) < 2:
        return float("inf")
    gaps = np.diff(np.asarray(values, dtype=np.float64))
    gaps = gaps[np.isfinite(gaps) & (gaps > 0)]
    return float(gaps.min()) if gaps.size else float("inf")


def estimate_resolution(
    points: Sequence[SamplePoint], default: float = DEFAULT_RESOLUTION
) -> float:
    """Infer the lattice step (degrees) of a dense grid.

    Takes the smallest adjacent gap between distinct latitudes and, separately,
    between distinct longitudes, and returns the smaller of the two so that
    rectangular cells still get a single canonical step.

    Args:
        points: Sample points; order does not matter.
        default: Returned for fewer than 2 points or when neither axis has a gap.

    Returns:
        Positive step in degrees.
    """
    if len(points) < 2:
        return default
    lats, lons = axes(points)
    step = min(_min_gap(lats), _min_gap(lons))
    return step if np.isfinite(step) and step > 0 else default
