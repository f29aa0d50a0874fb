"""
Air quality alert scheduler.

Purpose:
- Every interval, enumerate all subscriptions and for each one:
  fetch metrics -> predict -> evaluate policy -> dispatch alert
- Isolate failures: one subscriber's metrics/prediction/dispatch error never
  affects another subscriber in the same tick
- Survive store outages: back off briefly and retry enumeration

State: STOPPED -> start() -> RUNNING -> stop() -> STOPPED. The stop event is
checked at the top of every tick and interrupts the interval/backoff sleeps.

Usage:
- embedded: started by main.py on application startup
- standalone: python -m workers.alert_scheduler
"""
import asyncio
import logging
import signal
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol

from core.errors import DispatchError, MetricsFetchError, PredictionError, StoreUnavailableError
from models.air_quality import AirQualityMetrics, PredictionResult, RiskSignal
from models.subscription import Subscription
from services.risk_policy import RiskPolicy
from services.subscription_service import SubscriptionStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SEC = 30 * 60
DEFAULT_STORE_BACKOFF_SEC = 60.0


class MetricsSource(Protocol):
    async def fetch(self, lat: float, lon: float) -> AirQualityMetrics: ...


class RiskPredictor(Protocol):
    async def predict(self, sub: Subscription, metrics: AirQualityMetrics) -> PredictionResult: ...


class AlertDispatcher(Protocol):
    async def send(self, destination: str, signal: RiskSignal) -> dict: ...


class SchedulerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class Outcome(str, Enum):
    ALERTED = "alerted"
    NO_ALERT = "no_alert"
    NO_DESTINATION = "no_destination"
    METRICS_FAILED = "metrics_failed"
    PREDICTION_FAILED = "prediction_failed"
    DISPATCH_FAILED = "dispatch_failed"


@dataclass
class TickReport:
    outcomes: Dict[str, Outcome] = field(default_factory=dict)

    def counts(self) -> Dict[str, int]:
        return dict(Counter(o.value for o in self.outcomes.values()))


class AlertScheduler:
    def __init__(
        self,
        store: SubscriptionStore,
        metrics_source: MetricsSource,
        predictor: RiskPredictor,
        policy: RiskPolicy,
        dispatcher: AlertDispatcher,
        interval_sec: float = DEFAULT_INTERVAL_SEC,
        store_backoff_sec: float = DEFAULT_STORE_BACKOFF_SEC,
        concurrency: int = 1,
    ):
        self.store = store
        self.metrics_source = metrics_source
        self.predictor = predictor
        self.policy = policy
        self.dispatcher = dispatcher
        self.interval_sec = interval_sec if interval_sec > 0 else DEFAULT_INTERVAL_SEC
        self.store_backoff_sec = store_backoff_sec
        self.concurrency = max(1, int(concurrency))
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SchedulerState:
        if self._task is not None and not self._task.done():
            return SchedulerState.RUNNING
        return SchedulerState.STOPPED

    # ---------------- lifecycle ----------------

    def start(self) -> asyncio.Task:
        """Launch the loop as a background task and return immediately."""
        if self.state is SchedulerState.RUNNING:
            return self._task
        self._task = asyncio.create_task(self.run(), name="alert-scheduler")
        return self._task

    def request_stop(self) -> None:
        """Ask the loop to stop at the next tick boundary or sleep; does not wait."""
        self._stop_event.set()

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish its current step."""
        self.request_stop()
        if self._task is not None:
            await self._task
            self._task = None
            # only a completed stop clears the signal for the next start()
            self._stop_event.clear()

    async def run(self) -> None:
        logger.info(
            "Alert scheduler started (interval=%ss, policy=%s, concurrency=%s)",
            self.interval_sec, self.policy.kind.value, self.concurrency,
        )
        while not self._stop_event.is_set():
            report = await self.run_tick()
            if report is None:
                # store unavailable: retry enumeration after a short backoff
                await self._wait(self.store_backoff_sec)
                continue
            await self._wait(self.interval_sec)
        logger.info("Alert scheduler stopped")

    async def _wait(self, delay: float) -> None:
        """Sleep for `delay` seconds, returning early if stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    # ---------------- one tick ----------------

    async def run_tick(self) -> Optional[TickReport]:
        """
        One full pass over all subscriptions.

        Returns None when the store could not be enumerated.
        """
        try:
            subs = await self.store.list_all()
        except StoreUnavailableError as e:
            logger.error("Scheduler DB error: %s; retrying in %ss", e, self.store_backoff_sec)
            return None
        except Exception:
            logger.exception("Scheduler could not list subscriptions; retrying in %ss", self.store_backoff_sec)
            return None

        report = TickReport()
        if self.concurrency == 1:
            for sub in subs:
                report.outcomes[sub.owner_id] = await self.process_subscription(sub)
        else:
            sem = asyncio.Semaphore(self.concurrency)

            async def _bounded(s: Subscription) -> Outcome:
                async with sem:
                    return await self.process_subscription(s)

            outcomes: List[Outcome] = await asyncio.gather(*(_bounded(s) for s in subs))
            for sub, outcome in zip(subs, outcomes):
                report.outcomes[sub.owner_id] = outcome

        logger.info("Scheduler tick done: %d subscriptions %s", len(subs), report.counts())
        return report

    async def process_subscription(self, sub: Subscription) -> Outcome:
        """fetch -> predict -> evaluate -> dispatch for one subscriber; never raises."""
        try:
            metrics = await self.metrics_source.fetch(sub.latitude, sub.longitude)
        except MetricsFetchError as e:
            logger.warning("Metrics fetch error for owner %s: %s", sub.owner_id, e)
            return Outcome.METRICS_FAILED
        except Exception:
            logger.exception("Unexpected metrics error for owner %s", sub.owner_id)
            return Outcome.METRICS_FAILED

        try:
            prediction = await self.predictor.predict(sub, metrics)
        except PredictionError as e:
            logger.warning("Prediction error for owner %s: %s", sub.owner_id, e)
            return Outcome.PREDICTION_FAILED
        except Exception:
            logger.exception("Unexpected prediction error for owner %s", sub.owner_id)
            return Outcome.PREDICTION_FAILED

        decision = self.policy.evaluate(prediction, sub, metrics)
        if not decision.alert:
            return Outcome.NO_ALERT

        if not sub.email:
            logger.info("Alert for owner %s (%s) but no destination; skipping dispatch",
                        sub.owner_id, decision.reason)
            return Outcome.NO_DESTINATION

        try:
            await self.dispatcher.send(sub.email, decision.signal)
        except DispatchError as e:
            logger.warning("Notification error for owner %s: %s", sub.owner_id, e)
            return Outcome.DISPATCH_FAILED
        except Exception:
            logger.exception("Unexpected notification error for owner %s", sub.owner_id)
            return Outcome.DISPATCH_FAILED

        logger.info("Alert dispatched to owner %s (%s)", sub.owner_id, decision.reason)
        return Outcome.ALERTED


async def main():
    """Entry point for running the scheduler without the HTTP API."""
    from config.settings import Settings
    from core.bootstrap import build_services
    from core.logging import configure_logging

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    services = build_services(settings)
    if services.engine is not None:
        from core.db import create_tables
        await create_tables(services.engine)

    scheduler = services.scheduler
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.request_stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises
            pass

    try:
        await scheduler.start()
    finally:
        await scheduler.stop()
        if services.engine is not None:
            await services.engine.dispose()


if __name__ == "__main__":
    # Run scheduler: python -m workers.alert_scheduler
    asyncio.run(main())
