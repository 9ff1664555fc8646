"""Shared test fixtures for CloudCast tests."""

import time
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI

from cloudcast.api.logs import router as logs_router
from cloudcast.api.metrics import get_forecast_service, router as metrics_router
from cloudcast.config import settings
from cloudcast.forecasting.engine import MetricForecastService
from cloudcast.forecasting.model import Forecaster
from cloudcast.ingestion.base import DataPoint, MetricSource

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def make_points(values, step=timedelta(minutes=1), start=BASE_TIME):
    return [DataPoint(timestamp=start + step * i, value=float(v)) for i, v in enumerate(values)]


class FakeSource(MetricSource):
    """Returns canned datapoints and records every call."""

    def __init__(self, points=None, error=None):
        self.points = points or []
        self.error = error
        self.calls = []

    @property
    def source_name(self) -> str:
        return "fake"

    async def fetch_datapoints(self, query, time_range, now=None):
        self.calls.append((query, time_range))
        if self.error is not None:
            raise self.error
        return list(self.points)


class FakeCloudWatchClient:
    """Stands in for a boto3 CloudWatch client."""

    def __init__(self, datapoints=None, error=None, delay=0.0):
        self.datapoints = datapoints or []
        self.error = error
        self.delay = delay
        self.requests = []

    def get_metric_statistics(self, **params):
        self.requests.append(params)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"Label": params["MetricName"], "Datapoints": list(self.datapoints)}


@pytest.fixture
def fast_forecaster():
    return Forecaster(epochs=40, random_state=7)


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setattr(settings, "aws_access_key_id", "AKIATEST")
    monkeypatch.setattr(settings, "aws_secret_access_key", "secret")


@pytest.fixture
def no_aws_credentials(monkeypatch):
    monkeypatch.setattr(settings, "aws_access_key_id", "")
    monkeypatch.setattr(settings, "aws_secret_access_key", "")


@pytest.fixture
def build_app():
    """Assemble an app whose metric route uses the given service."""
    services = []

    def _build(service: MetricForecastService) -> FastAPI:
        services.append(service)
        app = FastAPI()
        app.dependency_overrides[get_forecast_service] = lambda: service
        app.include_router(metrics_router)
        app.include_router(logs_router)
        return app

    yield _build

    for service in services:
        service.shutdown()


@pytest.fixture
def points():
    """Factory for evenly spaced datapoints."""
    return make_points


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def fake_client():
    return FakeCloudWatchClient
