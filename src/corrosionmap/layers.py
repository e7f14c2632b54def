"""Layer lifecycle on the map view: which layers to show for the data at hand.

States follow data availability: EMPTY → SPARSE_ONLY (coarse predictions) →
DENSE_READY (high-resolution grid). Every render builds the complete new layer
set first and only then swaps it in, so stale layers never stack.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from corrosionmap.boundary import BoundaryCache
from corrosionmap.classify import normalize_metal
from corrosionmap.grid import DEFAULT_RESOLUTION, estimate_resolution
from corrosionmap.ingest import normalize_dense, normalize_predictions
from corrosionmap.kernel import DEFAULT_GROUND_RADIUS_M, KernelDensityLayerManager
from corrosionmap.models import BoundaryPolygon, GeoBounds, RasterImage, SamplePoint
from corrosionmap.raster import build_raster
from corrosionmap.renderers.folium_map import (
    SPARSE_CELL_HALF_SIZE,
    FoliumMapView,
    boundary_mask,
    grid_cells,
    point_markers,
    raster_overlay,
)

logger = logging.getLogger(__name__)


class LayerState(Enum):
    EMPTY = "empty"
    SPARSE_ONLY = "sparse-only"
    DENSE_READY = "dense-ready"


@dataclass(frozen=True)
class DisplayOptions:
    show_heatmap: bool = True
    show_grid: bool = False
    show_markers: bool = False
    show_mask: bool = False


def _extent(points: list[SamplePoint]) -> GeoBounds:
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return GeoBounds(min(lats), max(lats), min(lons), max(lons))


class LayerOrchestrator:
    def __init__(
        self,
        view: FoliumMapView,
        boundary_cache: BoundaryCache | None = None,
        metal: str = "steel",
        options: DisplayOptions | None = None,
        ground_radius_m: float = DEFAULT_GROUND_RADIUS_M,
        default_resolution: float = DEFAULT_RESOLUTION,
    ):
        self.view = view
        self.boundary_cache = boundary_cache or BoundaryCache()
        self.kernel = KernelDensityLayerManager(view, ground_radius_m)
        self._metal = normalize_metal(metal)
        self._options = options or DisplayOptions()
        self._default_resolution = default_resolution
        self._sparse: list[SamplePoint] = []
        self._dense: list[SamplePoint] = []
        self._state = LayerState.EMPTY
        self._attached: list = []
        self._raster: RasterImage | None = None
        self._seq = 0

    @property
    def state(self) -> LayerState:
        return self._state

    @property
    def options(self) -> DisplayOptions:
        return self._options

    @property
    def metal(self) -> str:
        return self._metal

    @metal.setter
    def metal(self, value: str) -> None:
        self._metal = normalize_metal(value)
        self._render()

    @property
    def raster(self) -> RasterImage | None:
        """Raster currently on the map (None unless a dense grid is displayed)."""
        return self._raster

    @property
    def attached_layers(self) -> tuple:
        layers = list(self._attached)
        if self.kernel.layer is not None:
            layers.append(self.kernel.layer)
        return tuple(layers)

    @property
    def sparse_points(self) -> list[SamplePoint]:
        return list(self._sparse)

    @property
    def dense_points(self) -> list[SamplePoint]:
        return list(self._dense)

    def set_data(
        self,
        predictions: Iterable[Any] | None,
        dense: Iterable[Any] | None = None,
        metal: str | None = None,
    ) -> LayerState:
        """Replace the data set, fit the view to it and re-render.

        Args:
            predictions: Coarse prediction records or SamplePoints.
            dense: Optional high-resolution grid records or SamplePoints.
            metal: Optional new metal identifier for classification.

        Returns:
            The new state.
        """
        self._seq += 1
        if metal is not None:
            self._metal = normalize_metal(metal)
        self._sparse = normalize_predictions(predictions or [])
        self._dense = normalize_dense(dense or [])
        if self._dense:
            self._state = LayerState.DENSE_READY
        elif self._sparse:
            self._state = LayerState.SPARSE_ONLY
        else:
            self._state = LayerState.EMPTY
        logger.info(
            "Data update #%d: %d predictions, %d grid points → %s",
            self._seq,
            len(self._sparse),
            len(self._dense),
            self._state.value,
        )
        fit_points = self._sparse or self._dense
        if fit_points:
            self.view.fit_bounds(_extent(fit_points))
        self._render()
        return self._state

    def clear(self) -> None:
        self.set_data([], [])

    def set_options(self, **changes: bool) -> DisplayOptions:
        """Toggle display options; the state is unchanged but layers are rebuilt."""
        self._options = replace(self._options, **changes)
        self._render()
        return self._options

    def boundary_ticket(self) -> int:
        """Token identifying the data update a boundary request belongs to."""
        return self._seq

    def apply_boundary(self, ticket: int, polygon: BoundaryPolygon | None) -> bool:
        """Apply a finished boundary fetch unless newer data arrived meanwhile.

        Returns:
            True if the result was applied.
        """
        if ticket != self._seq:
            logger.debug("Discarding boundary result for stale update #%d (now #%d)", ticket, self._seq)
            return False
        if polygon is None:
            return False
        if not self.boundary_cache.populated:
            self.boundary_cache.populate(polygon)
        self._render()
        return True

    def dispose(self) -> None:
        self.kernel.dispose()
        self._detach_all()
        self._raster = None

    def _detach_all(self) -> None:
        for layer in self._attached:
            self.view.remove_layer(layer)
        self._attached = []

    def _build_layers(self) -> tuple[list, RasterImage | None]:
        opts = self._options
        boundary = self.boundary_cache.polygon
        layers: list = []
        raster = None

        if opts.show_heatmap and self._state is LayerState.DENSE_READY:
            try:
                raster = build_raster(
                    self._dense,
                    boundary=boundary,
                    projection=self.view.projection,
                    default_resolution=self._default_resolution,
                )
                if raster is not None:
                    layers.append(raster_overlay(raster))
            except ValueError:
                logger.exception("Raster overlay failed")

        if opts.show_grid and self._state is not LayerState.EMPTY:
            if self._dense:
                half = estimate_resolution(self._dense, self._default_resolution) / 2
                layers.append(grid_cells(self._dense, self._metal, half, 0.5))
            else:
                layers.append(grid_cells(self._sparse, self._metal, SPARSE_CELL_HALF_SIZE, 0.45))

        if opts.show_markers and self._sparse:
            layers.append(point_markers(self._sparse, self._metal))

        if opts.show_mask and boundary is not None and not boundary.is_empty:
            layers.append(boundary_mask(boundary))

        return layers, raster

    def _render(self) -> None:
        layers, raster = self._build_layers()
        # The point kernel covers sparse data, and dense data that yielded no raster
        use_kernel = (
            self._options.show_heatmap
            and self._state is not LayerState.EMPTY
            and raster is None
            and any(math.isfinite(p.value) for p in self._sparse)
        )

        # Swap: everything old goes, then everything new comes in
        self._detach_all()
        if not use_kernel:
            self.kernel.dispose()
        for layer in layers:
            self.view.add_layer(layer)
        self._attached = layers
        self._raster = raster
        if use_kernel:
            self.kernel.update(self._sparse, self.view.zoom, self.view.center_lat)

        if raster is not None:
            logger.info("Heat display: raster overlay (hi-res)")
        elif use_kernel:
            if self._state is LayerState.DENSE_READY:
                logger.info("Heat display: no renderable grid, falling back to point kernel")
            else:
                logger.info("Heat display: point kernel")
