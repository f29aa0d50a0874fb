import pytest

from conftest import FakeMetricsSource, FakePredictor, make_metrics
from core.errors import PredictionError
from models.air_quality import PredictionResult


@pytest.mark.asyncio
async def test_air_quality_returns_metrics_and_risk(api_client, services):
    services.metrics_source = FakeMetricsSource(default=make_metrics(aqi=88))
    services.predictor = FakePredictor(default=PredictionResult(predicted_aqi=90, risk_level=" Moderate"))

    resp = await api_client.get("/air-quality", params={"latitude": 52.5, "longitude": 13.4})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["latitude"] == 52.5
    assert data["metrics"]["aqi"] == 88
    assert data["risk_level"] == "Moderate"
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_air_quality_prediction_failure_reports_unknown(api_client, services):
    class FailingPredictor:
        async def predict(self, sub, metrics):
            raise PredictionError("ml down")

    services.predictor = FailingPredictor()
    resp = await api_client.get("/air-quality", params={"latitude": 52.5, "longitude": 13.4})
    assert resp.status_code == 200
    assert resp.json()["data"]["risk_level"] == "unknown"


@pytest.mark.asyncio
async def test_air_quality_metrics_failure_is_bad_gateway(api_client, services):
    services.metrics_source = FakeMetricsSource(fail_for={(52.5, 13.4)})
    resp = await api_client.get("/air-quality", params={"latitude": 52.5, "longitude": 13.4})
    assert resp.status_code == 502
    assert resp.json()["error"]["message"] == "Failed to fetch air quality data"


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{}, {"latitude": 52.5}, {"latitude": 0, "longitude": 13.4}])
async def test_air_quality_requires_coordinates(api_client, params):
    resp = await api_client.get("/air-quality", params=params)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_recent_notifications_requires_token(api_client):
    resp = await api_client.get("/notifications/recent")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_recent_notifications_only_lists_callers_alerts(api_client, services, auth_headers, subscription):
    from models.air_quality import RiskSignal

    await services.store.upsert(subscription("1", email="a@x.com"))
    await services.store.upsert(subscription("2", email="b@x.com"))
    await services.notification_service.send("a@x.com", RiskSignal(level="poor"))
    await services.notification_service.send("b@x.com", RiskSignal(level="hazardous"))

    resp = await api_client.get("/notifications/recent", headers=auth_headers("1"))
    assert resp.status_code == 200
    recent = resp.json()["data"]
    assert len(recent) == 1
    assert recent[0]["destination"] == "a@x.com"
    assert recent[0]["risk"] == "POOR"

    resp_other = await api_client.get("/notifications/recent", headers=auth_headers("3"))
    assert resp_other.json()["data"] == []


@pytest.mark.asyncio
async def test_ready_reports_unreachable_store(api_client, services):
    async def down():
        return False

    services.store.ping = down
    resp = await api_client.get("/ready")
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "db_unreachable"
