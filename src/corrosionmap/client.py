"""HTTP client for the corrosion prediction backend."""

import logging
from typing import Any

import httpx

from corrosionmap.ingest import normalize_dense, normalize_predictions
from corrosionmap.models import GeoBounds, SamplePoint

logger = logging.getLogger(__name__)


class PredictionError(Exception):
    """Backend call failure."""


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return resp.text[:200]


def _unwrap(body: Any, keys: tuple[str, ...]) -> list:
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in keys:
            if isinstance(body.get(key), list):
                return body[key]
    return []


class PredictionClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _post(self, path: str, body: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                resp = self._client.post(url, json=body, timeout=self._timeout)
            else:
                resp = httpx.post(url, json=body, timeout=self._timeout)
        except httpx.TransportError as e:
            raise PredictionError(
                f"Failed to reach the prediction backend at {self.base_url}: {e}"
            ) from e
        if resp.is_error:
            raise PredictionError(f"{path} returned {resp.status_code}: {_detail(resp)}")
        try:
            return resp.json()
        except ValueError as e:
            raise PredictionError(f"{path} returned invalid JSON") from e

    def fetch_predictions(self, start_date: str, end_date: str, metal: str) -> list[SamplePoint]:
        """Coarse per-unit predictions for the date range.

        Raises:
            PredictionError: On transport failure, HTTP error status or invalid JSON.
        """
        body = {"start_date": start_date, "end_date": end_date, "metal_type": metal}
        logger.info("Fetching predictions: %s", body)
        records = _unwrap(self._post("/predict", body), ("predictions",))
        points = normalize_predictions(records)
        logger.info("Received %d predictions", len(points))
        return points

    def fetch_dense_grid(
        self,
        start_date: str,
        end_date: str,
        metal: str,
        region: GeoBounds,
        resolution: float = 0.1,
    ) -> list[SamplePoint]:
        """High-resolution interpolated grid over ``region``.

        Raises:
            PredictionError: On transport failure, HTTP error status or invalid JSON.
        """
        body = {
            "start_date": start_date,
            "end_date": end_date,
            "metal_type": metal,
            "grid_resolution_deg": resolution,
            "min_lon": region.min_lon,
            "max_lon": region.max_lon,
            "min_lat": region.min_lat,
            "max_lat": region.max_lat,
            "method": "cubic",
            "mask_geojson_path": "de.json",
            "include_nulls": False,
        }
        records = _unwrap(self._post("/predict-smooth", body), ("points", "data"))
        points = normalize_dense(records)
        logger.info("Received %d grid points", len(points))
        return points
