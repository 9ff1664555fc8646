"""Metrics API — historical series plus a short-horizon forecast."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from cloudcast.errors import ForecastServiceError
from cloudcast.forecasting.engine import MetricForecastResponse, MetricForecastService
from cloudcast.forecasting.time_range import TIME_RANGES
from cloudcast.ingestion.base import MetricQuery
from cloudcast.ingestion.cloudwatch import METRIC_UNITS

logger = logging.getLogger("cloudcast.api.metrics")
router = APIRouter(prefix="/api/metrics", tags=["metrics"])
service = MetricForecastService()


def get_forecast_service() -> MetricForecastService:
    return service


@router.post("", response_model=MetricForecastResponse)
async def fetch_metrics(
    payload: Any = Body(default=None),
    forecast_service: MetricForecastService = Depends(get_forecast_service),
):
    """Fetch a metric series for a resource and forecast its next values.

    Body: ``{resource_id, scope, metric_name, range_token}``. Malformed bodies
    are reported as 400, like missing fields.
    """
    query = _parse_query(payload)
    try:
        return await forecast_service.run(query)
    except ForecastServiceError as exc:
        if exc.status_code >= 500:
            logger.error(
                f"metric request failed: {exc.message}",
                extra={"resource_id": query.resource_id, "metric_name": query.metric_name},
            )
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


def _parse_query(payload: Any) -> MetricQuery:
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    try:
        return MetricQuery.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise HTTPException(
            status_code=400,
            detail=f"Invalid parameters: {', '.join(fields) or 'body'}",
        ) from exc


@router.get("/ranges")
async def list_ranges():
    """Supported range tokens and the units requested per metric."""
    return {
        "ranges": [
            {
                "token": spec.token,
                "lookback_seconds": int(spec.lookback.total_seconds()),
                "period_seconds": spec.period_seconds,
            }
            for spec in TIME_RANGES.values()
        ],
        "units": dict(METRIC_UNITS),
    }
