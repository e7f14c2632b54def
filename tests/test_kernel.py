import pytest
from folium.plugins import HeatMap

from corrosionmap.kernel import (
    BLUR_FRACTION,
    MIN_RADIUS_PX,
    KernelDensityLayerManager,
    kernel_state,
    meters_per_pixel,
    pixel_radius,
)
from corrosionmap.models import SamplePoint
from corrosionmap.renderers.folium_map import FoliumMapView


def _heat_layers(view: FoliumMapView) -> list:
    return [child for child in view.map._children.values() if isinstance(child, HeatMap)]


def test_meters_per_pixel_halves_per_zoom_level():
    previous = meters_per_pixel(0, 50.0)
    for zoom in range(1, 19):
        current = meters_per_pixel(zoom, 50.0)
        assert current < previous
        assert current == pytest.approx(previous / 2)
        previous = current


def test_meters_per_pixel_equator_zoom_zero():
    assert meters_per_pixel(0, 0.0) == pytest.approx(40075016.686 / 256)


def test_radius_keeps_ground_distance_and_floor():
    radii = [pixel_radius(z, 50.0, 25_000.0) for z in range(0, 15)]
    assert all(r >= MIN_RADIUS_PX for r in radii)
    assert radii[0] == MIN_RADIUS_PX
    assert radii == sorted(radii)
    # Above the floor the radius tracks the ground distance exactly
    assert radii[10] == int(25_000.0 / meters_per_pixel(10, 50.0) + 0.5)


def test_blur_is_fraction_of_radius():
    state = kernel_state(9, 50.0, 25_000.0)
    assert state.blur_px == int(state.radius_px * BLUR_FRACTION + 0.5)
    assert state.zoom == 9 and state.center_lat == 50.0


def test_update_attaches_layer_and_subscribes(sparse_predictions):
    view = FoliumMapView(center=(50.0, 10.0), zoom=6)
    manager = KernelDensityLayerManager(view)
    layer = manager.update(sparse_predictions)
    assert view.has_layer(layer)
    assert manager.state == kernel_state(6, 50.0)
    assert layer.options["radius"] == manager.state.radius_px
    assert view.listener_count("zoomend") == 1
    assert view.listener_count("moveend") == 1


def test_zoom_change_rewrites_radius_without_rebuilding(sparse_predictions):
    view = FoliumMapView(center=(50.0, 10.0), zoom=6)
    manager = KernelDensityLayerManager(view)
    layer = manager.update(sparse_predictions)
    view.set_view(zoom=9)
    expected = kernel_state(9, 50.0)
    assert manager.layer is layer
    assert layer.options["radius"] == expected.radius_px
    assert layer.options["blur"] == expected.blur_px
    assert manager.state == expected


def test_repeated_updates_do_not_leak(sparse_predictions):
    view = FoliumMapView()
    manager = KernelDensityLayerManager(view)
    for _ in range(4):
        manager.update(sparse_predictions)
    assert len(_heat_layers(view)) == 1
    assert view.listener_count("zoomend") == 1


def test_dispose_releases_everything(sparse_predictions):
    view = FoliumMapView()
    manager = KernelDensityLayerManager(view)
    layer = manager.update(sparse_predictions)
    manager.dispose()
    assert not view.has_layer(layer)
    assert view.listener_count("zoomend") == 0
    assert view.listener_count("moveend") == 0
    assert manager.state is None and not manager.active
    manager.dispose()  # idempotent


def test_update_without_finite_rates_disposes(sparse_predictions):
    view = FoliumMapView()
    manager = KernelDensityLayerManager(view)
    manager.update(sparse_predictions)
    assert manager.update([SamplePoint(50.0, 10.0, float("nan"))]) is None
    assert not _heat_layers(view)
    assert view.listener_count("zoomend") == 0
