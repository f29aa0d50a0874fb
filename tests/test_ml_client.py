import json

import httpx
import pytest

from conftest import make_metrics
from core.errors import PredictionError
from models.subscription import Subscription
from tools.ml_client import MLClient, RawIndexPredictor

SUB = Subscription(owner_id="1", latitude=52.5, longitude=13.4, email="a@x.com")


def _client(handler, base_url="http://ml.test", path="/predict"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MLClient(base_url, path, timeout=1.0, http_client=http)


@pytest.mark.asyncio
async def test_predict_posts_snapshot_and_parses_result():
    captured = {}

    def handler(request: httpx.Request):
        captured["url"] = str(request.url)
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"predicted_aqi": 87.5, "risk_level": "moderate", "meta": {"model": "v3"}})

    result = await _client(handler).predict(SUB, make_metrics(aqi=60))

    assert captured["method"] == "POST"
    assert captured["url"] == "http://ml.test/predict"
    body = captured["body"]
    assert body["latitude"] == 52.5
    assert body["longitude"] == 13.4
    assert body["metrics"]["pm2_5"] == 12.0
    assert body["features"] == [21.0, 55.0, 12.0, 20.0, 18.0, 3.0, 210.0, 497.0]
    assert result.predicted_aqi == 87.5
    assert result.risk_level == "moderate"
    assert result.meta == {"model": "v3"}


@pytest.mark.asyncio
async def test_error_status_raises_prediction_error():
    client = _client(lambda request: httpx.Response(503, text="warming up"))
    with pytest.raises(PredictionError, match="status 503"):
        await client.predict(SUB, make_metrics())


@pytest.mark.asyncio
async def test_undecodable_body_raises_prediction_error():
    client = _client(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(PredictionError):
        await client.predict(SUB, make_metrics())


@pytest.mark.asyncio
async def test_timeout_raises_prediction_error():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("slow model", request=request)

    with pytest.raises(PredictionError, match="timed out"):
        await _client(handler).predict(SUB, make_metrics())


def test_predict_path_is_normalized():
    assert MLClient("http://ml.test/", "predict").predict_url == "http://ml.test/predict"
    assert MLClient("http://ml.test", "").predict_url == "http://ml.test/predict"
    assert MLClient("http://ml.test", "/v2/score").predict_url == "http://ml.test/v2/score"


def test_empty_base_url_is_rejected():
    with pytest.raises(ValueError):
        MLClient("")


@pytest.mark.asyncio
async def test_raw_index_predictor_echoes_measured_aqi():
    result = await RawIndexPredictor().predict(SUB, make_metrics(aqi=133))
    assert result.predicted_aqi == 133
    assert result.risk_level is None
