# api/routes_air_quality.py
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.bootstrap import Services, get_services
from core.errors import MetricsFetchError, PredictionError
from core.response import ok
from models.subscription import Subscription

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/air-quality")
async def get_air_quality(
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    services: Services = Depends(get_services),
):
    """
    Current metrics and ML risk level for a location.

    The risk level is "unknown" when the predictor fails or returns none;
    a metrics failure is a 502.
    """
    if not latitude or not longitude:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")

    try:
        metrics = await services.metrics_source.fetch(latitude, longitude)
    except MetricsFetchError as e:
        logger.warning("Air quality lookup failed for (%s,%s): %s", latitude, longitude, e)
        raise HTTPException(status_code=502, detail="Failed to fetch air quality data")

    risk_level = "unknown"
    # the predictor takes a subscription; an anonymous lookup borrows the shape
    probe = Subscription(owner_id="", latitude=latitude, longitude=longitude)
    try:
        prediction = await services.predictor.predict(probe, metrics)
        if prediction.risk_level and prediction.risk_level.strip():
            risk_level = prediction.risk_level.strip()
    except PredictionError as e:
        logger.info("Prediction unavailable for (%s,%s): %s", latitude, longitude, e)

    return ok({
        "latitude": latitude,
        "longitude": longitude,
        "metrics": metrics.model_dump(),
        "risk_level": risk_level,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })
