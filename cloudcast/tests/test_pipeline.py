"""End-to-end tests for the retrieval-and-forecast pipeline."""

import time

import pytest

from cloudcast.errors import ConfigurationError, QueryValidationError, RetrievalError
from cloudcast.forecasting import model as model_module
from cloudcast.forecasting.engine import MetricForecastService, assemble_response
from cloudcast.forecasting.model import ForecastPoint
from cloudcast.ingestion.base import MetricQuery
from cloudcast.observability.metrics import metrics


def _query(**overrides):
    fields = {
        "resource_id": "i-0abc123",
        "scope": "eu-west-1",
        "metric_name": "CPUUtilization",
        "range_token": "1h",
    }
    fields.update(overrides)
    return MetricQuery(**fields)


class SlowForecaster:
    def train_and_predict(self, values, timestamps, metric_name, progress=None):
        time.sleep(0.5)
        return [ForecastPoint(timestamp=timestamps[-1], value=1.0)]


@pytest.fixture
def service_for(fake_source, fast_forecaster):
    services = []

    def _make(points=None, error=None, **kwargs):
        source = fake_source(points=points, error=error)
        kwargs.setdefault("forecaster", fast_forecaster)
        service = MetricForecastService(source=source, **kwargs)
        services.append(service)
        return service, source

    yield _make

    for service in services:
        service.shutdown()


class TestPipeline:
    @pytest.mark.asyncio
    async def test_no_datapoints_gives_empty_series_and_forecast(self, service_for):
        service, source = service_for(points=[])
        result = await service.run(_query())
        assert result.series == []
        assert result.forecast == []
        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_two_datapoints_skip_forecasting(self, service_for, points):
        service, _ = service_for(points=points([10.0, 11.0]))
        result = await service.run(_query())
        assert [r.value for r in result.series] == [10.0, 11.0]
        assert all(r.kind == "Actual" for r in result.series)
        assert result.forecast == []

    @pytest.mark.asyncio
    async def test_constant_series_forecasts_constant(self, service_for, points):
        service, _ = service_for(points=points([42.0] * 5))
        result = await service.run(_query())

        assert [r.value for r in result.series] == [42.0] * 5
        assert len(result.forecast) == 5
        for record in result.forecast:
            assert record.kind == "Prediction"
            assert record.value == pytest.approx(42.0)
            assert record.value >= 0

    @pytest.mark.asyncio
    async def test_missing_resource_id_fails_before_fetching(self, service_for):
        service, source = service_for(points=[])
        with pytest.raises(QueryValidationError, match="resource_id"):
            await service.run(_query(resource_id=None))
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_blank_field_counts_as_missing(self, service_for):
        service, source = service_for(points=[])
        with pytest.raises(QueryValidationError, match="scope"):
            await service.run(_query(scope="   "))
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_unknown_range_token_is_rejected(self, service_for):
        service, source = service_for(points=[])
        with pytest.raises(QueryValidationError, match="Invalid time range"):
            await service.run(_query(range_token="90d"))
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_resolved_range_reaches_the_source(self, service_for):
        service, source = service_for(points=[])
        await service.run(_query(range_token="24h"))
        _, time_range = source.calls[0]
        assert time_range.token == "24h"
        assert time_range.period_seconds == 1800

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [ConfigurationError("AWS credentials not configured"), RetrievalError("boom")]
    )
    async def test_source_errors_propagate(self, service_for, error):
        service, _ = service_for(error=error)
        with pytest.raises(type(error)):
            await service.run(_query())

    @pytest.mark.asyncio
    async def test_training_timeout_keeps_observations(self, service_for, points):
        service, _ = service_for(
            points=points([1.0, 2.0, 3.0, 4.0]),
            forecaster=SlowForecaster(),
            training_timeout=0.05,
        )
        result = await service.run(_query())
        assert len(result.series) == 4
        assert result.forecast == []

    @pytest.mark.asyncio
    async def test_training_failure_is_counted_as_failed(self, service_for, points, monkeypatch):
        def boom(self, x, y, progress=None):
            raise FloatingPointError("diverged")

        monkeypatch.setattr(model_module.MetricRegressor, "fit", boom)
        service, _ = service_for(points=points([1.0, 2.0, 3.0, 4.0]))
        before = metrics.snapshot()["training"]["outcomes"]

        result = await service.run(_query())

        after = metrics.snapshot()["training"]["outcomes"]
        assert len(result.series) == 4
        assert result.forecast == []
        assert after.get("failed", 0) == before.get("failed", 0) + 1
        assert after.get("empty", 0) == before.get("empty", 0)


def test_assemble_response_echoes_query(points):
    observed = points([1.0, 2.0])
    predicted = [ForecastPoint(timestamp=observed[-1].timestamp, value=2.5)]

    response = assemble_response(_query(metric_name="NetworkIn"), observed, predicted)

    assert response.resource_id == "i-0abc123"
    assert response.metric_name == "NetworkIn"
    assert response.range_token == "1h"
    assert [r.kind for r in response.series] == ["Actual", "Actual"]
    assert response.forecast[0].kind == "Prediction"
    assert response.forecast[0].value == 2.5
