import folium
import pytest
from folium.map import FitBounds

from corrosionmap.models import BoundaryPolygon, GeoBounds, SamplePoint
from corrosionmap.projection import EQUIRECTANGULAR, WEB_MERCATOR
from corrosionmap.raster import build_raster
from corrosionmap.renderers.folium_map import (
    FoliumMapView,
    boundary_mask,
    grid_cells,
    point_markers,
    raster_overlay,
)
from corrosionmap.renderers.legend import classification_legend, raster_colormap


def _children_of(view: FoliumMapView, cls) -> list:
    return [c for c in view.map._children.values() if isinstance(c, cls)]


def test_projection_follows_crs():
    assert FoliumMapView().projection is WEB_MERCATOR
    assert FoliumMapView(crs="EPSG4326").projection is EQUIRECTANGULAR


def test_subscription_release_exactly_once():
    view = FoliumMapView()
    calls = []
    sub = view.on("zoomend", calls.append)
    view.set_view(zoom=8)
    sub.release()
    view.set_view(zoom=9)
    assert calls == [view]
    with pytest.raises(RuntimeError):
        sub.release()


def test_set_view_emits_only_on_change():
    view = FoliumMapView(center=(50.0, 10.0), zoom=6)
    events = []
    view.on("zoomend", lambda v: events.append("zoom"))
    view.on("moveend", lambda v: events.append("move"))
    view.set_view(zoom=6, center=(50.0, 10.0))
    assert events == []
    view.set_view(zoom=7, center=(51.0, 10.0))
    assert events == ["zoom", "move"]
    assert view.zoom == 7 and view.center_lat == 51.0


def test_set_dark_swaps_tiles():
    view = FoliumMapView()
    view.set_dark(True)
    view.set_dark(False)
    tiles = _children_of(view, folium.TileLayer)
    assert len(tiles) == 1
    assert "dark" not in tiles[0].tiles
    dark_view = FoliumMapView(dark=True)
    assert "dark" in _children_of(dark_view, folium.TileLayer)[0].tiles


def test_fit_bounds_replaces_previous():
    view = FoliumMapView()
    view.fit_bounds(GeoBounds(47.0, 55.0, 6.0, 15.0))
    view.fit_bounds(GeoBounds(48.0, 50.0, 8.0, 10.0))
    fits = _children_of(view, FitBounds)
    assert len(fits) == 1
    assert fits[0].bounds == [[48.0, 8.0], [50.0, 10.0]]


def test_grid_cells_skip_nan_and_classify():
    points = [SamplePoint(50.0, 10.0, 100.0), SamplePoint(50.0, 11.0, float("nan"))]
    group = grid_cells(points, "steel", half_size=0.375, fill_opacity=0.45)
    rects = [c for c in group._children.values() if isinstance(c, folium.Rectangle)]
    assert len(rects) == 1


def test_point_markers_popup():
    points = [SamplePoint(50.0, 10.0, 123.456, data_points_used=4)]
    group = point_markers(points, "zinc")
    markers = [c for c in group._children.values() if isinstance(c, folium.CircleMarker)]
    assert len(markers) == 1


def test_layers_and_legends_render(grid_3x3, world_boundary):
    view = FoliumMapView()
    raster = build_raster(grid_3x3)
    overlay = raster_overlay(raster)
    mask = boundary_mask(world_boundary)
    view.add_layer(overlay)
    view.add_layer(mask)
    view.set_legends(classification_legend("copper"), raster_colormap(raster))
    view.set_legends(classification_legend("steel"), None)
    html = view.render_html()
    assert "data:image/png;base64," in html
    assert "Corrosivity category" in html and "Steel" in html
    assert "Copper" not in html
    view.remove_layer(overlay)
    assert not view.has_layer(overlay)
    assert view.has_layer(mask)


def test_boundary_mask_skips_degenerate_rings():
    boundary = BoundaryPolygon(rings=(((50.0, 10.0), (51.0, 10.0)), ((47.0, 6.0), (55.0, 6.0), (55.0, 15.0))))
    mask = boundary_mask(boundary)
    assert len(mask.locations) == 2
