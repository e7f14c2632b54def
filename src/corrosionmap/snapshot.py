"""CLI entry point: render a saved prediction payload to an HTML map and/or PNG.

    corrosionmap-snapshot points.json --boundary de.json --html map.html --png preview.png

The payload is either a list of records or an object with ``predictions``
(coarse) and/or ``points``/``data`` (dense grid) lists.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from corrosionmap.boundary import BoundaryCache, BoundaryMaskProvider, BoundarySource
from corrosionmap.config import Settings, configure_logging
from corrosionmap.layers import DisplayOptions, LayerOrchestrator, LayerState
from corrosionmap.raster import build_raster
from corrosionmap.renderers.folium_map import FoliumMapView
from corrosionmap.renderers.legend import classification_legend, raster_colormap
from corrosionmap.renderers.static import save_static_raster

logger = logging.getLogger(__name__)


def _split_payload(payload) -> tuple[list, list]:
    """Return (predictions, dense) from a saved payload."""
    if isinstance(payload, list):
        if payload and isinstance(payload[0], dict) and "location" in payload[0]:
            return payload, []
        return [], payload
    if isinstance(payload, dict):
        predictions = payload.get("predictions") or []
        dense = payload.get("points") or payload.get("data") or []
        return predictions, dense
    raise ValueError("payload must be a JSON list or object")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="corrosionmap-snapshot",
        description="Render corrosion predictions to an interactive map or a static preview.",
    )
    parser.add_argument("payload", type=Path, help="JSON file with prediction records")
    parser.add_argument("--boundary", type=Path, help="GeoJSON outline used for clipping")
    parser.add_argument("--metal", default="steel", help="steel, zinc, copper or aluminium")
    parser.add_argument("--html", type=Path, help="write an interactive folium map here")
    parser.add_argument("--png", type=Path, help="write a static raster preview here (dense grid only)")
    parser.add_argument("--grid", action="store_true", help="add classified grid cells")
    parser.add_argument("--markers", action="store_true", help="add point markers")
    parser.add_argument("--no-heatmap", action="store_true", help="omit raster/kernel heat layer")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings)
    args = build_parser().parse_args(argv)
    if args.html is None and args.png is None:
        logger.error("Nothing to do: pass --html and/or --png")
        return 2

    predictions, dense = _split_payload(json.loads(args.payload.read_text(encoding="utf-8")))

    cache = BoundaryCache()
    if args.boundary is not None:
        BoundaryMaskProvider([BoundarySource("file", str(args.boundary))], cache).load()

    view = FoliumMapView(center=settings.default_center, zoom=settings.default_zoom)
    orchestrator = LayerOrchestrator(
        view,
        cache,
        metal=args.metal,
        options=DisplayOptions(
            show_heatmap=not args.no_heatmap,
            show_grid=args.grid,
            show_markers=args.markers,
        ),
        ground_radius_m=settings.heat_radius_m,
        default_resolution=settings.default_resolution,
    )
    state = orchestrator.set_data(predictions, dense)
    if state is LayerState.EMPTY:
        logger.error("No usable points in %s", args.payload)
        return 1

    if args.html is not None:
        raster = orchestrator.raster
        view.set_legends(
            classification_legend(orchestrator.metal),
            raster_colormap(raster) if raster is not None else None,
        )
        view.save(args.html)
        print(f"Saved: {args.html}")

    if args.png is not None:
        if not orchestrator.dense_points:
            logger.error("--png needs a dense grid ('points'/'data'); coarse predictions are not a lattice")
            return 1
        raster = build_raster(
            orchestrator.dense_points,
            boundary=cache.polygon,
            projection=view.projection,
            default_resolution=settings.default_resolution,
        )
        if raster is None:
            logger.error("No renderable raster for the static preview")
            return 1
        path = save_static_raster(raster, cache.polygon, args.png)
        print(f"Saved: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
