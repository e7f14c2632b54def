"""Payload normalization: maps every known field alias onto SamplePoint.

The prediction backend is not consistent about field names. This module is the
only place that knows the aliases; everything downstream works on SamplePoint.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from corrosionmap.models import SamplePoint

logger = logging.getLogger(__name__)

LAT_KEYS = ("lat", "latitude")
LON_KEYS = ("lon", "lng", "longitude")
VALUE_KEYS = ("value", "predicted_corrosion_rate", "rate", "corrosion_rate")
_SPARSE_VALUE_KEYS = ("predicted_corrosion_rate",) + tuple(
    k for k in VALUE_KEYS if k != "predicted_corrosion_rate"
)


class DataShapeError(ValueError):
    """A record is missing usable coordinates."""


def _first(record: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result


def _coordinate(value: Any, name: str, record: Any) -> float:
    result = _as_float(value)
    if result is None or not math.isfinite(result):
        raise DataShapeError(f"unusable {name} in record: {record!r}")
    return result


def _rate(value: Any) -> float:
    result = _as_float(value)
    return result if result is not None and math.isfinite(result) else math.nan


def dense_point(record: Mapping[str, Any]) -> SamplePoint:
    """Normalize one high-resolution grid record.

    Raises:
        DataShapeError: If latitude or longitude is missing or not a finite number.
    """
    lat = _coordinate(_first(record, LAT_KEYS), "latitude", record)
    lon = _coordinate(_first(record, LON_KEYS), "longitude", record)
    return SamplePoint(lat=lat, lon=lon, value=_rate(_first(record, VALUE_KEYS)))


def sparse_point(record: Mapping[str, Any]) -> SamplePoint:
    """Normalize one coarse prediction record.

    ``location`` is either ``[lon, lat]`` (GeoJSON order) or a mapping with
    latitude/longitude aliases. Records without ``location`` fall back to
    top-level coordinate aliases.

    Raises:
        DataShapeError: If no usable location can be found.
    """
    location = record.get("location")
    if isinstance(location, (list, tuple)):
        if len(location) < 2:
            raise DataShapeError(f"location needs [lon, lat]: {record!r}")
        raw_lon, raw_lat = location[0], location[1]
    elif isinstance(location, Mapping):
        raw_lat = _first(location, LAT_KEYS)
        raw_lon = _first(location, LON_KEYS)
    elif location is None:
        raw_lat = _first(record, LAT_KEYS)
        raw_lon = _first(record, LON_KEYS)
    else:
        raise DataShapeError(f"invalid location format: {location!r}")

    lat = _coordinate(raw_lat, "latitude", record)
    lon = _coordinate(raw_lon, "longitude", record)
    used = _as_float(record.get("data_points_used"))
    return SamplePoint(
        lat=lat,
        lon=lon,
        value=_rate(_first(record, _SPARSE_VALUE_KEYS)),
        data_points_used=int(used) if used is not None and math.isfinite(used) else None,
    )


def _normalize(records: Iterable[Any], convert) -> list[SamplePoint]:
    points: list[SamplePoint] = []
    skipped = 0
    for record in records or ():
        if isinstance(record, SamplePoint):
            points.append(record)
            continue
        if not isinstance(record, Mapping):
            skipped += 1
            continue
        try:
            points.append(convert(record))
        except DataShapeError as e:
            skipped += 1
            logger.debug("Skipping record: %s", e)
    if skipped:
        logger.info("Skipped %d record(s) without usable coordinates", skipped)
    return points


def normalize_dense(records: Iterable[Any]) -> list[SamplePoint]:
    """Normalize a high-resolution grid payload, skipping malformed records."""
    return _normalize(records, dense_point)


def normalize_predictions(records: Iterable[Any]) -> list[SamplePoint]:
    """Normalize a coarse prediction payload, skipping malformed records."""
    return _normalize(records, sparse_point)


def ensure_points(items: Iterable[Any]) -> list[SamplePoint]:
    """Accept SamplePoints or raw dense records and return SamplePoints."""
    return normalize_dense(items)
