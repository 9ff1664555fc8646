import pytest
from httpx import ASGITransport, AsyncClient

from cloudcast.observability.metrics import InMemoryMetrics


def test_metrics_snapshot_includes_latency_percentiles_and_counts():
    m = InMemoryMetrics(latency_window=10)

    m.observe_request("/api/health", 200, 12.0)
    m.observe_request("/api/health", 200, 24.0)
    m.observe_request("/api/metrics", 502, 200.0)

    snap = m.snapshot()

    assert snap["requests_total"] == 3
    assert snap["status_counts"]["2xx"] == 2
    assert snap["status_counts"]["5xx"] == 1
    assert snap["path_counts"]["/api/health"] == 2
    assert snap["latency_ms"]["samples"] == 3
    assert snap["latency_ms"]["p95"] >= snap["latency_ms"]["p50"]


def test_training_outcomes_are_counted():
    m = InMemoryMetrics()

    m.observe_training("ok", 140.0)
    m.observe_training("ok", 180.0)
    m.observe_training("timeout", 30000.0)

    training = m.snapshot()["training"]
    assert training["runs"] == 3
    assert training["outcomes"] == {"ok": 2, "timeout": 1}
    assert training["duration_ms"]["samples"] == 3
    assert training["duration_ms"]["p50"] == 180.0
    assert training["duration_ms"]["p99"] == 180.0


@pytest.mark.asyncio
async def test_app_health_and_stats(aws_credentials):
    from cloudcast.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        health = await client.get("/api/health")
        assert health.status_code == 200
        assert health.json()["status"] == "healthy"
        assert "X-Request-ID" in health.headers

        ready = await client.get("/api/health/ready")
        assert ready.status_code == 200

        stats = await client.get("/api/stats")
        assert stats.status_code == 200
        assert stats.json()["metrics"]["requests_total"] >= 2


@pytest.mark.asyncio
async def test_readiness_requires_credentials(no_aws_credentials):
    from cloudcast.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        ready = await client.get("/api/health/ready")
        assert ready.status_code == 503
        assert ready.json()["checks"]["aws_credentials"] is False
