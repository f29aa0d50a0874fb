# core/bootstrap.py
"""
Service wiring.

build_services(settings) constructs every collaborator once from an explicit
Settings object and returns them in a Services container. main.py keeps the
container on app.state; workers.alert_scheduler uses it directly. Tests build
their own container with fakes.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings
from core.db import create_engine_and_sessionmaker
from services.notification_service import NotificationService
from services.risk_policy import PolicyKind, RiskPolicy, build_policy
from services.subscription_db_service import SubscriptionDBService
from services.subscription_service import InMemorySubscriptionStore, SubscriptionService, SubscriptionStore
from tools.air_quality import AirQualityClient
from tools.mailer import Mailer, SMTPConfig
from tools.ml_client import MLClient, RawIndexPredictor
from workers.alert_scheduler import AlertScheduler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: SubscriptionStore
    subscription_service: SubscriptionService
    metrics_source: AirQualityClient
    predictor: Union[MLClient, RawIndexPredictor]
    policy: RiskPolicy
    notification_service: NotificationService
    scheduler: AlertScheduler
    engine: Optional[AsyncEngine] = None


def build_store(settings: Settings):
    if settings.db_enabled:
        engine, session_maker = create_engine_and_sessionmaker(settings.DATABASE_URL, echo=settings.DEBUG)
        if session_maker is not None:
            return SubscriptionDBService(session_maker), engine
    logger.info("Using in-memory subscription store (USE_DB=%s)", settings.USE_DB)
    return InMemorySubscriptionStore(), None


def build_mailer(settings: Settings) -> Optional[Mailer]:
    if not settings.smtp_configured:
        logger.warning("SMTP configuration incomplete; notification emails disabled")
        return None
    try:
        return Mailer(SMTPConfig(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            from_addr=settings.SMTP_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            start_tls=settings.SMTP_START_TLS,
            timeout=settings.SMTP_TIMEOUT_SEC,
        ))
    except ValueError as e:
        logger.error("mailer init failed: %s", e)
        return None


def build_predictor(settings: Settings):
    if not settings.ML_SERVICE_URL:
        logger.warning("ML service URL missing; falling back to raw AQI values")
        return RawIndexPredictor()
    return MLClient(settings.ML_SERVICE_URL, settings.ML_PREDICT_PATH, timeout=settings.ML_TIMEOUT_SEC)


def build_policy_for(settings: Settings, predictor) -> RiskPolicy:
    """
    The raw-index fallback only fills predicted_aqi, so a categorical policy
    paired with it could never alert; switch to the numeric variant.
    """
    kind = settings.RISK_POLICY
    if isinstance(predictor, RawIndexPredictor) and str(kind).strip().lower() == PolicyKind.CATEGORICAL.value:
        logger.warning("RISK_POLICY=categorical needs an ML service; using numeric threshold policy on raw AQI")
        kind = PolicyKind.NUMERIC
    return build_policy(kind, default_threshold=settings.DEFAULT_AQI_THRESHOLD)


def build_services(settings: Settings) -> Services:
    store, engine = build_store(settings)
    metrics_source = AirQualityClient(
        settings.AIR_QUALITY_URL,
        settings.WEATHER_FORECAST_URL,
        timeout=settings.METRICS_TIMEOUT_SEC,
        population_density=settings.POPULATION_DENSITY_DEFAULT,
    )
    predictor = build_predictor(settings)
    policy = build_policy_for(settings, predictor)
    notification_service = NotificationService(build_mailer(settings))
    scheduler = AlertScheduler(
        store,
        metrics_source,
        predictor,
        policy,
        notification_service,
        interval_sec=settings.notification_interval_sec,
        store_backoff_sec=settings.STORE_RETRY_BACKOFF_SEC,
        concurrency=settings.SCHEDULER_CONCURRENCY,
    )
    return Services(
        settings=settings,
        store=store,
        subscription_service=SubscriptionService(store),
        metrics_source=metrics_source,
        predictor=predictor,
        policy=policy,
        notification_service=notification_service,
        scheduler=scheduler,
        engine=engine,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency: the container built by main.create_app."""
    return request.app.state.services
