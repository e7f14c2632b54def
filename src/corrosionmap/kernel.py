"""Point-kernel heat layer whose radius stays constant in ground distance."""

import logging
import math
from collections.abc import Iterable
from typing import Any

from folium.plugins import HeatMap

from corrosionmap.classify import heat_intensity
from corrosionmap.ingest import normalize_predictions
from corrosionmap.models import KernelLayerState

logger = logging.getLogger(__name__)

EARTH_CIRCUMFERENCE_M = 40075016.686
DEFAULT_GROUND_RADIUS_M = 25_000.0
MIN_RADIUS_PX = 4
BLUR_FRACTION = 0.65
MIN_OPACITY = 0.35

HEAT_GRADIENT = {
    0.0: "rgba(0, 255, 0, 0)",
    0.2: "rgba(0, 255, 0, 0.85)",
    0.4: "rgba(127, 255, 0, 0.9)",
    0.6: "rgba(255, 255, 0, 0.95)",
    0.8: "rgba(255, 127, 0, 1)",
    1.0: "rgba(255, 0, 0, 1)",
}


def _round(x: float) -> int:
    # Half-up, like the browser side
    return int(math.floor(x + 0.5))


def meters_per_pixel(zoom: float, latitude: float) -> float:
    """Ground size of one screen pixel on a 256 px Web-Mercator tile pyramid."""
    return math.cos(math.radians(latitude)) * EARTH_CIRCUMFERENCE_M / 2 ** (zoom + 8)


def pixel_radius(zoom: float, latitude: float, meters: float) -> int:
    """Screen radius covering ``meters`` on the ground, floored at MIN_RADIUS_PX."""
    return max(MIN_RADIUS_PX, _round(meters / meters_per_pixel(zoom, latitude)))


def kernel_state(
    zoom: int, center_lat: float, ground_radius_m: float = DEFAULT_GROUND_RADIUS_M
) -> KernelLayerState:
    radius = pixel_radius(zoom, center_lat, ground_radius_m)
    return KernelLayerState(
        radius_px=radius,
        blur_px=_round(radius * BLUR_FRACTION),
        zoom=int(zoom),
        center_lat=float(center_lat),
    )


class KernelDensityLayerManager:
    """Owns one heat layer on a map view and keeps its radius in step with the zoom.

    ``update`` swaps in a new layer for a new point set; viewport changes only
    rewrite radius/blur on the existing layer. ``dispose`` removes the layer
    and releases the view subscriptions.
    """

    def __init__(self, view, ground_radius_m: float = DEFAULT_GROUND_RADIUS_M):
        self._view = view
        self._ground_radius_m = ground_radius_m
        self._layer: HeatMap | None = None
        self._state: KernelLayerState | None = None
        self._subscriptions: list = []

    @property
    def state(self) -> KernelLayerState | None:
        return self._state

    @property
    def layer(self) -> HeatMap | None:
        return self._layer

    @property
    def active(self) -> bool:
        return self._layer is not None

    def update(
        self,
        points: Iterable[Any],
        zoom: int | None = None,
        center_lat: float | None = None,
    ) -> HeatMap | None:
        """Build the heat layer for a sparse point set and attach it.

        Args:
            points: SamplePoints or raw prediction records.
            zoom: Current map zoom; defaults to the view's.
            center_lat: Current map center latitude; defaults to the view's.

        Returns:
            The attached layer, or None when no point has a finite rate.
        """
        heat_data = [
            [p.lat, p.lon, heat_intensity(p.value)]
            for p in normalize_predictions(points)
            if math.isfinite(p.value)
        ]
        if not heat_data:
            self.dispose()
            return None

        state = kernel_state(
            self._view.zoom if zoom is None else zoom,
            self._view.center_lat if center_lat is None else center_lat,
            self._ground_radius_m,
        )
        layer = HeatMap(
            heat_data,
            name="Corrosion density",
            min_opacity=MIN_OPACITY,
            radius=state.radius_px,
            blur=state.blur_px,
            gradient=HEAT_GRADIENT,
        )
        if self._layer is not None:
            self._view.remove_layer(self._layer)
        self._view.add_layer(layer)
        self._layer = layer
        self._state = state
        if not self._subscriptions:
            self._subscriptions = [
                self._view.on("zoomend", self._on_view_change),
                self._view.on("moveend", self._on_view_change),
            ]
        logger.info(
            "Point kernel with %d points, radius %dpx blur %dpx",
            len(heat_data),
            state.radius_px,
            state.blur_px,
        )
        return layer

    def _on_view_change(self, view) -> None:
        if self._layer is None:
            return
        state = kernel_state(view.zoom, view.center_lat, self._ground_radius_m)
        self._layer.options.update(radius=state.radius_px, blur=state.blur_px)
        self._state = state
        logger.debug("Kernel radius %dpx at zoom %d", state.radius_px, state.zoom)

    def dispose(self) -> None:
        """Detach the layer and release the view subscriptions."""
        for subscription in self._subscriptions:
            subscription.release()
        self._subscriptions = []
        if self._layer is not None:
            self._view.remove_layer(self._layer)
        self._layer = None
        self._state = None
