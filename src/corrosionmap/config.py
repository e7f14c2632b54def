"""Environment-driven settings. Entry points call load_dotenv() before from_env()."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from corrosionmap.models import GeoBounds

_ROOT = Path(__file__).parent.parent.parent
_PREFIX = "CORROSIONMAP_"

DEFAULT_BOUNDARY_URL = (
    "https://raw.githubusercontent.com/isellsoap/deutschlandGeoJSON/main/"
    "1_deutschland/4_niedrig.geo.json"
)


def _env(name: str, default: str) -> str:
    return os.environ.get(_PREFIX + name, default)


def _float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{name} must be a number, got {raw!r}") from None


def _int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{name} must be an integer, got {raw!r}") from None


def _region(raw: str) -> GeoBounds:
    """Parse ``min_lon,min_lat,max_lon,max_lat``."""
    try:
        min_lon, min_lat, max_lon, max_lat = (float(v) for v in raw.split(","))
    except ValueError:
        raise ValueError(
            f"{_PREFIX}REGION must be 'min_lon,min_lat,max_lon,max_lat', got {raw!r}"
        ) from None
    return GeoBounds(min_lat=min_lat, max_lat=max_lat, min_lon=min_lon, max_lon=max_lon)


@dataclass(frozen=True)
class Settings:
    api_base_url: str = "http://localhost:8000"
    http_timeout: float = 30.0
    heat_radius_m: float = 25_000.0
    default_resolution: float = 0.1
    default_center: tuple[float, float] = (50.0, 10.0)  # Germany
    default_zoom: int = 6
    boundary_file: Path = _ROOT / "resources" / "de.json"
    boundary_path: str = "/static/de.json"
    boundary_url: str = DEFAULT_BOUNDARY_URL
    region: GeoBounds = GeoBounds(min_lat=47.0, max_lat=55.5, min_lon=5.5, max_lon=15.5)
    grid_resolution_deg: float = 0.1  # Requested from the smooth endpoint
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CORROSIONMAP_* variables, falling back to defaults.

        Raises:
            ValueError: If a numeric or region variable cannot be parsed.
        """
        d = cls()
        level_name = _env("LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"{_PREFIX}LOG_LEVEL is not a logging level: {level_name!r}")
        return cls(
            api_base_url=_env("API_BASE_URL", d.api_base_url).rstrip("/"),
            http_timeout=_float("HTTP_TIMEOUT", d.http_timeout),
            heat_radius_m=_float("HEAT_RADIUS_M", d.heat_radius_m),
            default_resolution=_float("DEFAULT_RESOLUTION", d.default_resolution),
            default_center=(
                _float("DEFAULT_LAT", d.default_center[0]),
                _float("DEFAULT_LON", d.default_center[1]),
            ),
            default_zoom=_int("DEFAULT_ZOOM", d.default_zoom),
            boundary_file=Path(_env("BOUNDARY_FILE", str(d.boundary_file))),
            boundary_path=_env("BOUNDARY_PATH", d.boundary_path),
            boundary_url=_env("BOUNDARY_URL", d.boundary_url),
            region=_region(_env("REGION", "5.5,47.0,15.5,55.5")),
            grid_resolution_deg=_float("GRID_RESOLUTION_DEG", d.grid_resolution_deg),
            log_level=level,
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
