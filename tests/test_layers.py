import folium
from folium.plugins import HeatMap
from folium.raster_layers import ImageOverlay
import pytest

from corrosionmap.boundary import BoundaryCache
from corrosionmap.layers import DisplayOptions, LayerOrchestrator, LayerState
from corrosionmap.models import BoundaryPolygon, SamplePoint
from corrosionmap.renderers.folium_map import FoliumMapView

WEST_COLUMN = BoundaryPolygon(rings=(((48.0, 8.4), (52.0, 8.4), (52.0, 9.6), (48.0, 9.6)),))


def _count(view: FoliumMapView, cls) -> int:
    return sum(isinstance(c, cls) for c in view.map._children.values())


def _orchestrator(**kwargs) -> tuple[FoliumMapView, LayerOrchestrator]:
    view = FoliumMapView(center=(50.0, 10.0), zoom=6)
    return view, LayerOrchestrator(view, **kwargs)


def test_starts_empty():
    view, orch = _orchestrator()
    assert orch.state is LayerState.EMPTY
    assert orch.attached_layers == ()


def test_sparse_only_uses_point_kernel(sparse_predictions):
    view, orch = _orchestrator()
    assert orch.set_data(sparse_predictions) is LayerState.SPARSE_ONLY
    assert orch.kernel.active
    assert orch.raster is None
    assert _count(view, HeatMap) == 1
    assert _count(view, ImageOverlay) == 0


def test_dense_raster_takes_priority_over_kernel(sparse_predictions, grid_3x3):
    view, orch = _orchestrator()
    orch.set_data(sparse_predictions)
    assert orch.set_data(sparse_predictions, grid_3x3) is LayerState.DENSE_READY
    assert orch.raster is not None
    assert not orch.kernel.active
    assert _count(view, HeatMap) == 0
    assert _count(view, ImageOverlay) == 1
    assert view.listener_count("zoomend") == 0


def test_clear_detaches_everything(sparse_predictions, grid_3x3):
    view, orch = _orchestrator(options=DisplayOptions(show_grid=True, show_markers=True))
    orch.set_data(sparse_predictions, grid_3x3)
    orch.clear()
    assert orch.state is LayerState.EMPTY
    assert orch.attached_layers == ()
    assert _count(view, ImageOverlay) == 0
    assert _count(view, folium.FeatureGroup) == 0


def test_toggling_heat_keeps_state(sparse_predictions):
    view, orch = _orchestrator()
    orch.set_data(sparse_predictions)
    orch.set_options(show_heatmap=False)
    assert orch.state is LayerState.SPARSE_ONLY
    assert _count(view, HeatMap) == 0
    orch.set_options(show_heatmap=True)
    assert _count(view, HeatMap) == 1


def test_layers_never_stack(sparse_predictions, grid_3x3):
    view, orch = _orchestrator(options=DisplayOptions(show_grid=True, show_markers=True))
    for _ in range(3):
        orch.set_data(sparse_predictions, grid_3x3)
        orch.set_options(show_grid=True)
    assert _count(view, ImageOverlay) == 1
    assert _count(view, folium.FeatureGroup) == 2  # grid cells + markers
    assert len(orch.attached_layers) == 3


def test_grid_cells_render_in_every_non_empty_state(sparse_predictions, grid_3x3):
    view, orch = _orchestrator(options=DisplayOptions(show_heatmap=False, show_grid=True))
    orch.set_data(sparse_predictions)
    assert _count(view, folium.FeatureGroup) == 1
    orch.set_data([], grid_3x3)
    assert orch.state is LayerState.DENSE_READY
    assert _count(view, folium.FeatureGroup) == 1


def test_stale_boundary_result_is_discarded(grid_3x3):
    cache = BoundaryCache()
    view, orch = _orchestrator(boundary_cache=cache)
    orch.set_data([], grid_3x3)
    ticket = orch.boundary_ticket()
    orch.set_data([], grid_3x3)
    assert orch.apply_boundary(ticket, WEST_COLUMN) is False
    assert not cache.populated


def test_boundary_clips_displayed_raster(grid_3x3):
    cache = BoundaryCache()
    view, orch = _orchestrator(boundary_cache=cache)
    orch.set_data([], grid_3x3)
    assert (orch.raster.pixels[..., 3] > 0).all()
    assert orch.apply_boundary(orch.boundary_ticket(), WEST_COLUMN) is True
    assert cache.polygon is WEST_COLUMN
    alpha = orch.raster.pixels[..., 3]
    assert (alpha[:, 0] > 0).all() and (alpha[:, 1:] == 0).all()


def test_mask_needs_a_boundary(sparse_predictions):
    cache = BoundaryCache()
    view, orch = _orchestrator(boundary_cache=cache, options=DisplayOptions(show_mask=True))
    orch.set_data(sparse_predictions)
    assert _count(view, folium.Polygon) == 0
    orch.apply_boundary(orch.boundary_ticket(), WEST_COLUMN)
    assert _count(view, folium.Polygon) == 1


def test_metal_change_rerenders(sparse_predictions):
    view, orch = _orchestrator(options=DisplayOptions(show_grid=True))
    orch.set_data(sparse_predictions, metal="Aluminum")
    assert orch.metal == "aluminium"
    orch.metal = "zinc"
    assert orch.metal == "zinc"
    assert _count(view, folium.FeatureGroup) == 1


def test_dispose_releases_kernel(sparse_predictions):
    view, orch = _orchestrator()
    orch.set_data(sparse_predictions)
    orch.dispose()
    assert _count(view, HeatMap) == 0
    assert view.listener_count("zoomend") == 0


def test_unrenderable_dense_grid_falls_back_to_kernel(sparse_predictions):
    view, orch = _orchestrator()
    dense = [SamplePoint(50.0, 10.0, float("nan")), SamplePoint(50.0, 10.1, float("nan"))]
    assert orch.set_data(sparse_predictions, dense) is LayerState.DENSE_READY
    assert orch.raster is None
    assert orch.kernel.active
    assert _count(view, HeatMap) == 1
    assert _count(view, ImageOverlay) == 0


def test_unrenderable_dense_grid_without_sparse_shows_no_heat():
    view, orch = _orchestrator()
    assert orch.set_data([], [SamplePoint(50.0, 10.0, float("nan"))]) is LayerState.DENSE_READY
    assert not orch.kernel.active
    assert _count(view, HeatMap) == 0 and _count(view, ImageOverlay) == 0
    assert view.listener_count("zoomend") == 0


def test_projection_error_falls_back_to_kernel(monkeypatch, sparse_predictions, grid_3x3):
    def fail(*args, **kwargs):
        raise ValueError("point outside projection domain")

    monkeypatch.setattr("corrosionmap.layers.build_raster", fail)
    view, orch = _orchestrator()
    assert orch.set_data(sparse_predictions, grid_3x3) is LayerState.DENSE_READY
    assert orch.raster is None
    assert _count(view, HeatMap) == 1


def test_programming_errors_in_raster_build_propagate(monkeypatch, sparse_predictions, grid_3x3):
    def fail(*args, **kwargs):
        raise TypeError("unexpected argument")

    monkeypatch.setattr("corrosionmap.layers.build_raster", fail)
    view, orch = _orchestrator()
    with pytest.raises(TypeError):
        orch.set_data(sparse_predictions, grid_3x3)
