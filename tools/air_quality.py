"""
Air quality metrics tool.

Provides:
- AirQualityClient.fetch(lat, lon): current pollutant + weather snapshot at given coordinates.

Uses the Open-Meteo HTTP APIs (no API key needed). Two calls per fetch:
    air-quality API -> pm2_5, pm10, nitrogen_dioxide, sulphur_dioxide, carbon_monoxide, us_aqi
    forecast API    -> temperature_2m, relative_humidity_2m

The result is normalized into models.air_quality.AirQualityMetrics. Every
failure (timeout, HTTP error, bad JSON, missing series) is raised as
MetricsFetchError so the caller can isolate it.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from core.errors import MetricsFetchError
from models.air_quality import AirQualityMetrics

logger = logging.getLogger(__name__)

AIR_QUALITY_HOURLY = "carbon_monoxide,sulphur_dioxide,nitrogen_dioxide,pm10,pm2_5,us_aqi"
WEATHER_HOURLY = "temperature_2m,relative_humidity_2m"


def _latest(values: Optional[List[Any]]) -> Optional[float]:
    """Last non-null value of an hourly series."""
    for v in reversed(values or []):
        if v is not None:
            return float(v)
    return None


class AirQualityClient:
    def __init__(
        self,
        air_quality_url: str,
        weather_url: str,
        timeout: float = 10.0,
        population_density: float = 497.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.air_quality_url = air_quality_url
        self.weather_url = weather_url
        self.timeout = timeout
        self.population_density = population_density
        # tests inject a client backed by httpx.MockTransport
        self._http_client = http_client

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await client.get(url, params=params, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise MetricsFetchError(f"request to {url} timed out") from e
        except httpx.HTTPError as e:
            raise MetricsFetchError(f"request to {url} failed: {e}") from e
        if resp.status_code >= 400:
            raise MetricsFetchError(
                f"request failed: status {resp.status_code}, url: {url}, response: {resp.text[:200]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise MetricsFetchError(f"decode response from {url}: {e}") from e

    async def fetch(self, lat: float, lon: float) -> AirQualityMetrics:
        """Fetch the most recent measurements for the given coordinates."""
        if self._http_client is not None:
            return await self._fetch(self._http_client, lat, lon)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch(client, lat, lon)

    async def _fetch(self, client: httpx.AsyncClient, lat: float, lon: float) -> AirQualityMetrics:
        base = {"latitude": float(lat), "longitude": float(lon), "timezone": "UTC"}
        aq = await self._get_json(client, self.air_quality_url, {**base, "hourly": AIR_QUALITY_HOURLY})
        weather = await self._get_json(client, self.weather_url, {**base, "hourly": WEATHER_HOURLY})

        aq_hourly = aq.get("hourly") or {}
        weather_hourly = weather.get("hourly") or {}

        required = {
            "temperature": ("weather", weather_hourly.get("temperature_2m")),
            "humidity": ("weather", weather_hourly.get("relative_humidity_2m")),
            "pm2_5": ("air quality", aq_hourly.get("pm2_5")),
            "pm10": ("air quality", aq_hourly.get("pm10")),
            "no2": ("air quality", aq_hourly.get("nitrogen_dioxide")),
            "so2": ("air quality", aq_hourly.get("sulphur_dioxide")),
            "co": ("air quality", aq_hourly.get("carbon_monoxide")),
        }
        values: Dict[str, float] = {}
        for field, (source, series) in required.items():
            v = _latest(series)
            if v is None:
                raise MetricsFetchError(f"{source} response missing {field} data")
            values[field] = v

        metrics = AirQualityMetrics(
            **values,
            population_density=self.population_density,
            aqi=_latest(aq_hourly.get("us_aqi")),
        )
        logger.debug("Fetched metrics for (%s,%s): %s", lat, lon, metrics)
        return metrics
