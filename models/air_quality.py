# models/air_quality.py
from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class AirQualityMetrics(BaseModel):
    """
    Snapshot of the latest measurements at one coordinate pair.

    Pollutants are in µg/m³, temperature in °C, humidity in %.
    `aqi` is the raw measured index reported by the metrics source (US AQI);
    it is not part of the model's feature vector.
    """
    temperature: float
    humidity: float
    pm2_5: float
    pm10: float
    no2: float
    so2: float
    co: float
    population_density: float
    aqi: Optional[float] = None

    def feature_vector(self) -> List[float]:
        """Ordered features expected by the ML model."""
        return [
            self.temperature,
            self.humidity,
            self.pm2_5,
            self.pm10,
            self.no2,
            self.so2,
            self.co,
            self.population_density,
        ]


class PredictionResult(BaseModel):
    predicted_aqi: Optional[float] = None
    risk_level: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class RiskSignal(BaseModel):
    """What the dispatcher is told about a positive alert decision."""
    level: Optional[str] = None  # categorical policy
    value: Optional[float] = None  # numeric policy (effective AQI)
    threshold: Optional[float] = None

    def label(self) -> str:
        if self.level:
            return self.level.upper()
        if self.value is not None:
            return f"AQI {round(self.value)}"
        return "UNKNOWN"
