"""folium map view and layer factories.

FoliumMapView is the map-view abstraction the core renders into: it exposes
the current zoom/center and projection, attaches and detaches layers, and
emits ``zoomend``/``moveend`` events when the host (st_folium) reports a new
viewport.
"""

from __future__ import annotations

import html
import logging
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import folium
from branca.element import MacroElement
from folium.map import FitBounds
from folium.raster_layers import ImageOverlay

from corrosionmap.classify import classify, normalize_metal
from corrosionmap.models import BoundaryPolygon, GeoBounds, RasterImage, SamplePoint
from corrosionmap.projection import Projection, projection_for_crs
from corrosionmap.raster import raster_to_data_url

logger = logging.getLogger(__name__)

LIGHT_TILES = "OpenStreetMap"
DARK_TILES = "CartoDB dark_matter"
SPARSE_CELL_HALF_SIZE = 0.375  # degrees; coarse predictions sit on a 0.75° grid
_WORLD_RING = [[-90.0, -180.0], [90.0, -180.0], [90.0, 180.0], [-90.0, 180.0]]


@dataclass
class Subscription:
    """Registration handle for a map event listener. Release exactly once."""

    view: FoliumMapView
    event: str
    callback: Callable[[FoliumMapView], None]
    released: bool = field(default=False, init=False)

    def release(self) -> None:
        if self.released:
            raise RuntimeError(f"{self.event} subscription already released")
        self.view._listeners[self.event].remove(self.callback)
        self.released = True


class FoliumMapView:
    """Server-side model of the slippy map shown by the page."""

    def __init__(
        self,
        center: tuple[float, float] = (50.0, 10.0),
        zoom: int = 6,
        crs: str = "EPSG3857",
        dark: bool = False,
    ):
        self._center = (float(center[0]), float(center[1]))
        self._zoom = int(zoom)
        self._crs = crs
        self._projection = projection_for_crs(crs)
        self.map = folium.Map(
            location=list(self._center), zoom_start=self._zoom, crs=crs, tiles=None
        )
        self._tiles: folium.TileLayer | None = None
        self._fit: FitBounds | None = None
        self._legends: list = []
        self._listeners: dict[str, list[Callable[[FoliumMapView], None]]] = defaultdict(list)
        self.set_dark(dark)

    @property
    def zoom(self) -> int:
        return self._zoom

    @property
    def center(self) -> tuple[float, float]:
        return self._center

    @property
    def center_lat(self) -> float:
        return self._center[0]

    @property
    def projection(self) -> Projection:
        return self._projection

    def project(self, lat: float, lon: float) -> tuple[float, float]:
        return self._projection.project(lat, lon)

    def set_dark(self, dark: bool) -> None:
        """Swap the base tiles between OpenStreetMap and CARTO dark."""
        if self._tiles is not None:
            self._detach(self._tiles)
        self._tiles = folium.TileLayer(DARK_TILES if dark else LIGHT_TILES)
        self._tiles.add_to(self.map)

    def fit_bounds(self, bounds: GeoBounds, padding: tuple[int, int] = (50, 50)) -> None:
        """Replace any previous fit with one covering ``bounds``."""
        if self._fit is not None:
            self._detach(self._fit)
        self._fit = FitBounds(bounds.as_leaflet(), padding=padding)
        self.map.add_child(self._fit)

    def add_layer(self, layer) -> None:
        layer.add_to(self.map)

    def remove_layer(self, layer) -> None:
        self._detach(layer)

    def has_layer(self, layer) -> bool:
        return layer.get_name() in self.map._children

    def _detach(self, element) -> None:
        self.map._children.pop(element.get_name(), None)

    def set_legends(self, *legends) -> None:
        """Replace the legends: HTML elements go to the page, macros to the map."""
        root_html = self.map.get_root().html
        for legend in self._legends:
            root_html._children.pop(legend.get_name(), None)
            self._detach(legend)
        self._legends = [legend for legend in legends if legend is not None]
        for legend in self._legends:
            if isinstance(legend, MacroElement):
                self.map.add_child(legend)
            else:
                root_html.add_child(legend)

    def on(self, event: str, callback: Callable[[FoliumMapView], None]) -> Subscription:
        """Register ``callback(view)`` for ``zoomend`` or ``moveend``."""
        self._listeners[event].append(callback)
        return Subscription(self, event, callback)

    def listener_count(self, event: str) -> int:
        return len(self._listeners[event])

    def set_view(self, zoom: int | None = None, center: Sequence[float] | None = None) -> None:
        """Record the viewport reported by the browser and notify listeners."""
        zoom_changed = zoom is not None and int(zoom) != self._zoom
        new_center = (float(center[0]), float(center[1])) if center is not None else self._center
        moved = new_center != self._center
        if zoom_changed:
            self._zoom = int(zoom)
            self.map.options["zoom"] = self._zoom
        if moved:
            self._center = new_center
            self.map.location = list(new_center)
        if zoom_changed:
            self._emit("zoomend")
        if moved:
            self._emit("moveend")

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            callback(self)

    def render_html(self) -> str:
        return self.map.get_root().render()

    def save(self, path) -> None:
        self.map.save(str(path))


def raster_overlay(raster: RasterImage, opacity: float = 0.8) -> ImageOverlay:
    """Image overlay stretched over the raster's geographic bounds."""
    return ImageOverlay(
        image=raster_to_data_url(raster),
        bounds=raster.bounds.as_leaflet(),
        opacity=opacity,
        interactive=False,
        name="Corrosion raster",
    )


def grid_cells(
    points: Sequence[SamplePoint],
    metal: str,
    half_size: float,
    fill_opacity: float,
) -> folium.FeatureGroup:
    """One classified rectangle per point, colored by the metal's fixed bins."""
    group = folium.FeatureGroup(name="Grid cells")
    count = 0
    for p in points:
        try:
            color = classify(metal, p.value).color
        except ValueError:
            continue
        folium.Rectangle(
            bounds=[[p.lat - half_size, p.lon - half_size], [p.lat + half_size, p.lon + half_size]],
            stroke=False,
            fill=True,
            fill_color=color,
            fill_opacity=fill_opacity,
        ).add_to(group)
        count += 1
    logger.info("Grid layer with %d cells at ~%g°", count, half_size * 2)
    return group


def _popup_html(p: SamplePoint, metal: str, unit: str) -> str:
    lines = [
        f"<b>{html.escape(normalize_metal(metal).capitalize())} Corrosion</b>",
        f"Rate: <b>{p.value:.2f} {html.escape(unit)}</b>",
        f"<small>Location: {p.lat:.4f}, {p.lon:.4f}</small>",
    ]
    if p.data_points_used:
        lines.append(f"<small>Data points: {p.data_points_used}</small>")
    return "<br>".join(lines)


def point_markers(points: Sequence[SamplePoint], metal: str, unit: str = "g/m²/yr") -> folium.FeatureGroup:
    """Circle markers with a rate popup for each coarse prediction."""
    group = folium.FeatureGroup(name="Predictions")
    for p in points:
        try:
            color = classify(metal, p.value).color
        except ValueError:
            continue
        folium.CircleMarker(
            location=[p.lat, p.lon],
            radius=6,
            color="#ffffff",
            weight=1.5,
            fill=True,
            fill_color=color,
            fill_opacity=0.8,
            popup=folium.Popup(_popup_html(p, metal, unit), max_width=260),
        ).add_to(group)
    return group


def boundary_mask(boundary: BoundaryPolygon) -> folium.Polygon:
    """Darken everything outside the boundary: world ring with the outline as holes."""
    holes = [[[lat, lon] for lat, lon in ring] for ring in boundary.rings if len(ring) >= 3]
    return folium.Polygon(
        locations=[_WORLD_RING, *holes],
        color="#333333",
        weight=1,
        fill=True,
        fill_color="#000000",
        fill_opacity=0.35,
    )
