import random

import pytest

from corrosionmap.grid import DEFAULT_RESOLUTION, axes, estimate_resolution
from corrosionmap.models import SamplePoint


def _lattice(lat_step: float, lon_step: float, n: int = 4) -> list[SamplePoint]:
    return [
        SamplePoint(lat=47.0 + i * lat_step, lon=6.0 + j * lon_step, value=1.0)
        for i in range(n)
        for j in range(n)
    ]


def test_square_lattice():
    assert estimate_resolution(_lattice(0.25, 0.25)) == pytest.approx(0.25)


def test_rectangular_cells_use_smaller_step():
    assert estimate_resolution(_lattice(0.5, 0.2)) == pytest.approx(0.2)
    assert estimate_resolution(_lattice(0.1, 0.3)) == pytest.approx(0.1)


def test_order_does_not_matter():
    points = _lattice(0.1, 0.1, n=6)
    expected = estimate_resolution(points)
    shuffled = points[:]
    random.Random(7).shuffle(shuffled)
    assert estimate_resolution(shuffled) == expected


def test_fewer_than_two_points_gives_default():
    assert estimate_resolution([]) == DEFAULT_RESOLUTION
    assert estimate_resolution([SamplePoint(50.0, 10.0, 1.0)], default=0.5) == 0.5


def test_single_row_uses_column_gap():
    points = [SamplePoint(lat=50.0, lon=10.0 + 0.2 * j, value=1.0) for j in range(4)]
    assert estimate_resolution(points) == pytest.approx(0.2)


def test_duplicate_coordinates_only_gives_default():
    points = [SamplePoint(50.0, 10.0, 1.0), SamplePoint(50.0, 10.0, 2.0)]
    assert estimate_resolution(points, default=0.3) == 0.3


def test_axes_are_sorted_and_distinct(grid_3x3):
    lats, lons = axes(list(reversed(grid_3x3)))
    assert lats == (49.0, 50.0, 51.0)
    assert lons == (9.0, 10.0, 11.0)
