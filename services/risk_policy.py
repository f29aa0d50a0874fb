"""
Risk evaluation policies.

Decide alert / no-alert from a prediction and a subscription. Two variants
exist and a deployment picks exactly one at construction time (RISK_POLICY):

- categorical: the prediction's risk_level is authoritative
- numeric: the predicted AQI (or the raw measured AQI when the prediction
  is zero/absent) is compared against the subscriber's threshold

Policies are pure: no I/O, and malformed input yields "no alert" rather
than an exception.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from models.air_quality import AirQualityMetrics, PredictionResult, RiskSignal
from models.subscription import Subscription

logger = logging.getLogger(__name__)

ALERT_LEVELS = frozenset({"poor", "hazardous"})
SAFE_LEVELS = frozenset({"good", "moderate"})


class PolicyKind(str, Enum):
    CATEGORICAL = "categorical"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class AlertDecision:
    alert: bool
    signal: RiskSignal
    reason: str


def normalize_level(level: Optional[str]) -> str:
    return (level or "").strip().lower()


class CategoricalRiskPolicy:
    kind = PolicyKind.CATEGORICAL

    def evaluate(
        self,
        prediction: PredictionResult,
        sub: Subscription,
        metrics: Optional[AirQualityMetrics] = None,
    ) -> AlertDecision:
        level = normalize_level(prediction.risk_level)
        signal = RiskSignal(level=level or None)
        if level in ALERT_LEVELS:
            return AlertDecision(True, signal, f"risk level {level}")
        if level in SAFE_LEVELS:
            logger.info("Risk level %s does not require alert for owner %s", level, sub.owner_id)
            return AlertDecision(False, signal, f"risk level {level}")
        logger.info("Unknown risk level '%s' for owner %s, skipping notification", level, sub.owner_id)
        return AlertDecision(False, signal, "unrecognized risk level")


def effective_value(prediction: PredictionResult, metrics: Optional[AirQualityMetrics]) -> Optional[float]:
    """
    Predicted AQI, or the raw measured AQI when the prediction is 0 or missing.

    A genuinely-zero prediction cannot be told apart from "absent" here.
    """
    predicted = prediction.predicted_aqi
    if predicted:
        return float(predicted)
    if metrics is not None and metrics.aqi is not None:
        return float(metrics.aqi)
    return None if predicted is None else 0.0


class NumericThresholdPolicy:
    kind = PolicyKind.NUMERIC

    def __init__(self, default_threshold: float = 100):
        self.default_threshold = default_threshold

    def evaluate(
        self,
        prediction: PredictionResult,
        sub: Subscription,
        metrics: Optional[AirQualityMetrics] = None,
    ) -> AlertDecision:
        threshold = float(sub.threshold if sub.threshold is not None else self.default_threshold)
        value = effective_value(prediction, metrics)
        signal = RiskSignal(value=value, threshold=threshold)
        if value is None:
            logger.info("No predicted or measured AQI for owner %s, skipping notification", sub.owner_id)
            return AlertDecision(False, signal, "no AQI value")
        if value >= threshold:
            return AlertDecision(True, signal, f"AQI {value:g} >= threshold {threshold:g}")
        logger.info("AQI %.1f below threshold %.1f for owner %s", value, threshold, sub.owner_id)
        return AlertDecision(False, signal, f"AQI {value:g} < threshold {threshold:g}")


RiskPolicy = Union[CategoricalRiskPolicy, NumericThresholdPolicy]


def build_policy(kind: Union[str, PolicyKind], default_threshold: float = 100) -> RiskPolicy:
    """Select the policy variant; unknown names raise ValueError at startup."""
    kind = PolicyKind(str(kind.value if isinstance(kind, PolicyKind) else kind).strip().lower())
    if kind is PolicyKind.CATEGORICAL:
        return CategoricalRiskPolicy()
    return NumericThresholdPolicy(default_threshold=default_threshold)
