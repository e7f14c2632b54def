import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from corrosionmap.models import BoundaryPolygon, SamplePoint  # noqa: E402


@pytest.fixture
def grid_3x3() -> list[SamplePoint]:
    """Unit-step 3x3 lattice at lat 49..51, lon 9..11, values 100..900 row-major from the south."""
    return [
        SamplePoint(lat=49.0 + i, lon=9.0 + j, value=100.0 * (3 * i + j + 1))
        for i in range(3)
        for j in range(3)
    ]


@pytest.fixture
def sparse_predictions() -> list[dict]:
    return [
        {"location": [10.0, 50.0], "predicted_corrosion_rate": 120.0, "data_points_used": 12},
        {"location": [11.0, 51.0], "predicted_corrosion_rate": 480.0, "data_points_used": 7},
        {"location": [12.0, 52.0], "predicted_corrosion_rate": 910.0},
    ]


@pytest.fixture
def world_boundary() -> BoundaryPolygon:
    return BoundaryPolygon(rings=(((-80.0, -179.0), (80.0, -179.0), (80.0, 179.0), (-80.0, 179.0)),))
