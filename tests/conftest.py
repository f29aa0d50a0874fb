import os
import sys
from pathlib import Path

# Keep the module-level app in main.py on the in-memory store with no
# scheduler, whatever the developer's .env says.
os.environ["USE_DB"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# Ensure project root is on sys.path so `core.*`, `services.*` imports work
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


from config.settings import Settings
from core.auth import create_access_token
from core.bootstrap import build_services
from core.errors import DispatchError, MetricsFetchError, PredictionError, StoreUnavailableError
from models.air_quality import AirQualityMetrics, PredictionResult
from models.subscription import Subscription
from services.subscription_service import InMemorySubscriptionStore

TEST_JWT_SECRET = "test-secret-for-air-alert-hs256-signing"


def make_metrics(aqi=None, **overrides) -> AirQualityMetrics:
    values = dict(
        temperature=21.0,
        humidity=55.0,
        pm2_5=12.0,
        pm10=20.0,
        no2=18.0,
        so2=3.0,
        co=210.0,
        population_density=497.0,
        aqi=aqi,
    )
    values.update(overrides)
    return AirQualityMetrics(**values)


# ---------------- fakes for the scheduler's collaborators ----------------

class FakeMetricsSource:
    """Returns a snapshot per coordinate; coordinates in `fail_for` raise."""

    def __init__(self, default=None, by_coord=None, fail_for=()):
        self.default = default or make_metrics(aqi=50)
        self.by_coord = dict(by_coord or {})
        self.fail_for = set(fail_for)
        self.calls = []

    async def fetch(self, lat, lon):
        self.calls.append((lat, lon))
        if (lat, lon) in self.fail_for:
            raise MetricsFetchError(f"upstream down for ({lat},{lon})")
        return self.by_coord.get((lat, lon), self.default)


class FakePredictor:
    """Returns a prediction per owner; owners in `fail_for` raise."""

    def __init__(self, default=None, by_owner=None, fail_for=()):
        self.default = default or PredictionResult(risk_level="good")
        self.by_owner = dict(by_owner or {})
        self.fail_for = set(fail_for)
        self.calls = []

    async def predict(self, sub, metrics):
        self.calls.append(sub.owner_id)
        if sub.owner_id in self.fail_for:
            raise PredictionError("model timeout")
        return self.by_owner.get(sub.owner_id, self.default)


class RecordingDispatcher:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    async def send(self, destination, signal):
        if destination in self.fail_for:
            raise DispatchError(f"smtp refused {destination}")
        self.sent.append((destination, signal))
        return {"destination": destination, "published": True}


class FlakyStore(InMemorySubscriptionStore):
    """In-memory store whose list_all() fails the first `failures` times."""

    def __init__(self, failures=0):
        super().__init__()
        self.failures = failures
        self.list_calls = 0

    async def list_all(self):
        self.list_calls += 1
        if self.list_calls <= self.failures:
            raise StoreUnavailableError("connection refused")
        return await super().list_all()


@pytest.fixture()
def settings():
    return Settings(
        USE_DB=False,
        JWT_SECRET=TEST_JWT_SECRET,
        SCHEDULER_ENABLED=False,
        ML_SERVICE_URL="",
        SMTP_HOST="",
        RISK_POLICY="categorical",
    )


@pytest.fixture()
def services(settings):
    """Real container (in-memory store) with fake outbound collaborators."""
    svc = build_services(settings)
    svc.metrics_source = FakeMetricsSource()
    svc.predictor = FakePredictor()
    return svc


@pytest_asyncio.fixture()
async def api_client(settings, services):
    """Async test client for the API, no real server and no scheduler."""
    from main import create_app

    app = create_app(settings=settings, services=services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture()
def auth_headers():
    def _headers(owner_id="1"):
        token = create_access_token(owner_id, TEST_JWT_SECRET)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture()
def subscription():
    def _sub(owner_id="1", lat=52.5, lon=13.4, threshold=None, email="a@x.com"):
        return Subscription(owner_id=owner_id, latitude=lat, longitude=lon, threshold=threshold, email=email)
    return _sub
