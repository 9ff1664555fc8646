"""Retrieval-and-forecast pipeline for one metric query."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from cloudcast.config import settings
from cloudcast.errors import QueryValidationError, TrainingError
from cloudcast.forecasting.model import MIN_OBSERVATIONS, Forecaster, ForecastPoint
from cloudcast.forecasting.time_range import resolve_time_range
from cloudcast.ingestion.base import DataPoint, MetricQuery, MetricSource
from cloudcast.ingestion.cloudwatch import CloudWatchSource
from cloudcast.observability.metrics import metrics

logger = logging.getLogger("cloudcast.pipeline")


class SeriesRecord(BaseModel):
    timestamp: datetime
    value: float
    kind: Literal["Actual", "Prediction"]


class MetricForecastResponse(BaseModel):
    resource_id: str
    metric_name: str
    range_token: str
    series: list[SeriesRecord]
    forecast: list[SeriesRecord]


def assemble_response(
    query: MetricQuery,
    observations: list[DataPoint],
    forecast: list[ForecastPoint],
) -> MetricForecastResponse:
    """Echo the query and tag observations and predictions by kind."""
    return MetricForecastResponse(
        resource_id=query.resource_id,
        metric_name=query.metric_name,
        range_token=query.range_token,
        series=[
            SeriesRecord(timestamp=p.timestamp, value=p.value, kind="Actual")
            for p in observations
        ],
        forecast=[
            SeriesRecord(timestamp=p.timestamp, value=p.value, kind="Prediction")
            for p in forecast
        ],
    )


class MetricForecastService:
    """Runs resolve → fetch → forecast → assemble for a single request.

    Training runs on a bounded thread pool so a long fit does not block the
    event loop; it is cut off after ``training_timeout`` seconds.
    """

    def __init__(
        self,
        source: MetricSource | None = None,
        forecaster: Forecaster | None = None,
        training_timeout: float | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.source = source or CloudWatchSource()
        self.forecaster = forecaster or Forecaster.from_settings()
        self.training_timeout = (
            training_timeout if training_timeout is not None else settings.training_timeout_seconds
        )
        self.max_workers = max_workers or settings.training_workers
        self._executor: ThreadPoolExecutor | None = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="cloudcast-train",
            )
        return self._executor

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    async def run(self, query: MetricQuery) -> MetricForecastResponse:
        missing = query.missing_fields()
        if missing:
            raise QueryValidationError(
                f"Missing required parameters: {', '.join(missing)}"
            )

        time_range = resolve_time_range(query.range_token)
        if time_range is None:
            raise QueryValidationError("Invalid time range provided.")

        context = {
            "resource_id": query.resource_id,
            "metric_name": query.metric_name,
            "range_token": query.range_token,
        }
        points = await self.source.fetch_datapoints(query, time_range)
        if not points:
            logger.info("no datapoints in window", extra={**context, "points": 0})
            return assemble_response(query, [], [])

        forecast: list[ForecastPoint] = []
        if len(points) >= MIN_OBSERVATIONS:
            forecast = await self._forecast(points, query.metric_name)

        logger.info(
            f"forecast generated with {len(forecast)} predictions",
            extra={**context, "points": len(points)},
        )
        return assemble_response(query, points, forecast)

    async def _forecast(self, points: list[DataPoint], metric_name: str) -> list[ForecastPoint]:
        values = [p.value for p in points]
        timestamps = [p.timestamp for p in points]

        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        try:
            forecast = await asyncio.wait_for(
                loop.run_in_executor(
                    self._pool(),
                    self.forecaster.train_and_predict,
                    values,
                    timestamps,
                    metric_name,
                ),
                timeout=self.training_timeout,
            )
        except TrainingError:
            logger.exception(
                "forecast failed; returning no predictions",
                extra={"metric_name": metric_name, "points": len(points)},
            )
            metrics.observe_training("failed", (time.perf_counter() - started) * 1000)
            return []
        except asyncio.TimeoutError:
            logger.warning(
                f"training exceeded {self.training_timeout:g}s; returning no predictions",
                extra={"metric_name": metric_name, "points": len(points)},
            )
            metrics.observe_training("timeout", (time.perf_counter() - started) * 1000)
            return []

        metrics.observe_training(
            "ok" if forecast else "empty",
            (time.perf_counter() - started) * 1000,
        )
        return forecast
