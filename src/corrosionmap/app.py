"""Corrosion map: Streamlit page for corrosion-rate predictions."""

import datetime
import logging

import streamlit as st
from dotenv import load_dotenv
from streamlit_folium import st_folium

load_dotenv()

from corrosionmap.boundary import (  # noqa: E402
    BoundaryCache,
    BoundaryMaskProvider,
    default_sources,
)
from corrosionmap.client import PredictionClient, PredictionError  # noqa: E402
from corrosionmap.config import Settings, configure_logging  # noqa: E402
from corrosionmap.layers import LayerOrchestrator, LayerState  # noqa: E402
from corrosionmap.renderers.folium_map import FoliumMapView  # noqa: E402
from corrosionmap.renderers.legend import (  # noqa: E402
    classification_legend,
    raster_colormap,
)

settings = Settings.from_env()
configure_logging(settings)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Corrosion Prediction",
    page_icon="🗺️",
    layout="wide",
)

_METALS = {"Steel": "steel", "Zinc": "zinc", "Copper": "copper", "Aluminium": "aluminium"}
_MAP_KEY = "corrosion_map"

# --- Session state initialization ---

if "view" not in st.session_state:
    st.session_state.view = FoliumMapView(
        center=settings.default_center, zoom=settings.default_zoom
    )
if "orchestrator" not in st.session_state:
    st.session_state.orchestrator = LayerOrchestrator(
        st.session_state.view,
        BoundaryCache(),
        ground_radius_m=settings.heat_radius_m,
        default_resolution=settings.default_resolution,
    )
if "metal" not in st.session_state:
    st.session_state.metal = "steel"
if "date_range" not in st.session_state:
    st.session_state.date_range = (datetime.date(2024, 11, 20), datetime.date(2024, 11, 30))
if "error_msg" not in st.session_state:
    st.session_state.error_msg = None
if "dark" not in st.session_state:
    st.session_state.dark = False

view: FoliumMapView = st.session_state.view
orchestrator: LayerOrchestrator = st.session_state.orchestrator


def _fetch(start: datetime.date, end: datetime.date, metal: str) -> None:
    """Fetch both prediction sets and hand them to the orchestrator."""
    st.session_state.error_msg = None
    st.session_state.date_range = (start, end)
    client = PredictionClient(settings.api_base_url, settings.http_timeout)
    start_s, end_s = start.isoformat(), end.isoformat()
    try:
        predictions = client.fetch_predictions(start_s, end_s, metal)
    except PredictionError as e:
        logger.error("Error fetching predictions: %s", e)
        st.session_state.error_msg = str(e)
        orchestrator.clear()
        return
    if not predictions:
        st.session_state.error_msg = "No predictions returned. Please try different dates."

    # Best-effort: the page still works from the coarse points alone
    try:
        dense = client.fetch_dense_grid(
            start_s, end_s, metal, settings.region, settings.grid_resolution_deg
        )
    except PredictionError as e:
        logger.warning("High-res grid fetch failed, falling back to points: %s", e)
        dense = []

    orchestrator.set_data(predictions, dense, metal=metal)
    if not orchestrator.boundary_cache.populated:
        ticket = orchestrator.boundary_ticket()
        provider = BoundaryMaskProvider(
            default_sources(
                settings.boundary_file,
                settings.api_base_url,
                settings.boundary_path,
                settings.boundary_url,
            ),
            orchestrator.boundary_cache,
            region=settings.region,
            timeout=settings.http_timeout,
        )
        orchestrator.apply_boundary(ticket, provider.load())


# --- Sidebar: metal, dates, view options ---

with st.sidebar:
    st.header("Prediction Settings")
    label = st.radio("Metal", list(_METALS), horizontal=True)
    metal = _METALS[label]
    start_date = st.date_input("Start Date", value=st.session_state.date_range[0])
    end_date = st.date_input("End Date", value=st.session_state.date_range[1])
    st.caption(f"{(end_date - start_date).days} days")
    submitted = st.button("Fetch Predictions", use_container_width=True)

    st.subheader("View Options")
    show_heatmap = st.checkbox("Density heatmap", value=True)
    show_grid = st.checkbox("Grid cells (exact values)", value=False)
    show_markers = st.checkbox("Point markers", value=False)
    show_mask = st.checkbox("Mask outside boundary", value=False)
    dark = st.checkbox("Dark map", value=False)

if submitted:
    st.session_state.metal = metal
    with st.spinner("Loading predictions..."):
        _fetch(start_date, end_date, metal)
elif metal != st.session_state.metal:
    # Metal switch refetches the stored date range
    st.session_state.metal = metal
    orchestrator.clear()
    with st.spinner("Loading predictions..."):
        _fetch(*st.session_state.date_range, metal)

wanted = dict(
    show_heatmap=show_heatmap,
    show_grid=show_grid,
    show_markers=show_markers,
    show_mask=show_mask,
)
if any(getattr(orchestrator.options, k) != v for k, v in wanted.items()):
    orchestrator.set_options(**wanted)
if dark != st.session_state.dark:
    st.session_state.dark = dark
    view.set_dark(dark)

# --- Status line ---

if st.session_state.error_msg:
    st.error(st.session_state.error_msg)
elif orchestrator.state is LayerState.EMPTY:
    st.info(
        "No predictions yet. Select a metal type, choose your date range, "
        "and click \"Fetch Predictions\" to visualize corrosion rates."
    )
else:
    st.success(
        f"Showing {len(orchestrator.sparse_points)} predictions for {label}"
        + (f" · {len(orchestrator.dense_points)} grid cells" if orchestrator.dense_points else "")
    )

# --- Map ---

# Feed the viewport the browser reported on the previous run back into the view
_prev = st.session_state.get(_MAP_KEY)
if isinstance(_prev, dict) and _prev.get("zoom") is not None:
    _c = _prev.get("center") or {}
    _center = (_c["lat"], _c["lng"]) if "lat" in _c and "lng" in _c else None
    view.set_view(zoom=_prev["zoom"], center=_center)

raster = orchestrator.raster
view.set_legends(
    classification_legend(orchestrator.metal),
    raster_colormap(raster) if raster is not None else None,
)
st_folium(
    view.map,
    key=_MAP_KEY,
    center=list(view.center),
    zoom=view.zoom,
    returned_objects=["zoom", "center"],
    use_container_width=True,
    height=720,
)
