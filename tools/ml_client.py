"""
ML prediction client.

- MLClient: POSTs a snapshot to the external ML service (default path /predict)
  and parses {"predicted_aqi": float, "risk_level": str, "meta": {...}}.
- RawIndexPredictor: used when no ML service is configured; echoes the raw
  measured AQI as the prediction.

Both expose `predict(sub, metrics) -> PredictionResult`.
"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from core.errors import PredictionError
from models.air_quality import AirQualityMetrics, PredictionResult
from models.subscription import Subscription

logger = logging.getLogger(__name__)

DEFAULT_PREDICT_PATH = "/predict"


class MLClient:
    def __init__(
        self,
        base_url: str,
        predict_path: str = DEFAULT_PREDICT_PATH,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        base_url = (base_url or "").rstrip("/")
        if not base_url:
            raise ValueError("ml service base URL is required")
        if not predict_path:
            predict_path = DEFAULT_PREDICT_PATH
        elif not predict_path.startswith("/"):
            predict_path = "/" + predict_path
        self.base_url = base_url
        self.predict_url = base_url + predict_path
        self.timeout = timeout
        self._http_client = http_client

    async def predict(self, sub: Subscription, metrics: AirQualityMetrics) -> PredictionResult:
        payload = {
            "latitude": sub.latitude,
            "longitude": sub.longitude,
            "metrics": metrics.model_dump(),
            "features": metrics.feature_vector(),
        }
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(self.predict_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.predict_url, json=payload)
        except httpx.TimeoutException as e:
            raise PredictionError(f"ml request timed out: {self.predict_url}") from e
        except httpx.HTTPError as e:
            raise PredictionError(f"ml request failed: {e}") from e

        if resp.status_code >= 400:
            raise PredictionError(f"ml service error: status {resp.status_code}")

        try:
            return PredictionResult.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise PredictionError(f"decode ml response: {e}") from e


class RawIndexPredictor:
    """Fallback when ML_SERVICE_URL is not set: the raw AQI is the prediction."""

    async def predict(self, sub: Subscription, metrics: AirQualityMetrics) -> PredictionResult:
        return PredictionResult(predicted_aqi=metrics.aqi)
