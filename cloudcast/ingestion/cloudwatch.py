"""CloudWatch source — period averages via GetMetricStatistics."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cloudcast.config import settings
from cloudcast.errors import ConfigurationError, RetrievalError
from cloudcast.forecasting.time_range import TimeRangeSpec, resolve_period
from cloudcast.ingestion.base import DataPoint, MetricQuery, MetricSource
from cloudcast.utils.time import ensure_utc, utc_now

logger = logging.getLogger("cloudcast.ingestion.cloudwatch")

METRIC_UNITS = MappingProxyType(
    {
        "CPUUtilization": "Percent",
        "NetworkIn": "Bytes",
        "NetworkOut": "Bytes",
        "DiskReadOps": "Count",
        "DiskWriteOps": "Count",
        "DiskReadBytes": "Bytes",
        "DiskWriteBytes": "Bytes",
        "MemoryUtilization": "Percent",
        "StatusCheckFailed": "Count",
    }
)
UNSPECIFIED_UNIT = "None"

ClientFactory = Callable[[str], Any]


def get_metric_unit(metric_name: str) -> str:
    return METRIC_UNITS.get(metric_name, UNSPECIFIED_UNIT)


def _boto_client(region: str):
    # boto3 sessions are not thread-safe; each worker thread gets its own.
    session = boto3.session.Session()
    return session.client(
        "cloudwatch",
        region_name=region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        aws_session_token=settings.aws_session_token or None,
        config=Config(
            connect_timeout=settings.fetch_timeout_seconds,
            read_timeout=settings.fetch_timeout_seconds,
            retries={"total_max_attempts": 1, "mode": "standard"},
        ),
    )


class CloudWatchSource(MetricSource):
    """Fetch average statistics for one EC2-style resource dimension."""

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        namespace: str | None = None,
        dimension: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client_factory = client_factory or _boto_client
        self.namespace = namespace or settings.cloudwatch_namespace
        self.dimension = dimension or settings.cloudwatch_dimension
        self.timeout = timeout if timeout is not None else settings.fetch_timeout_seconds

    @property
    def source_name(self) -> str:
        return "cloudwatch"

    async def fetch_datapoints(
        self,
        query: MetricQuery,
        time_range: TimeRangeSpec,
        now: datetime | None = None,
    ) -> list[DataPoint]:
        if not settings.has_aws_credentials:
            raise ConfigurationError("AWS credentials not configured")

        end = ensure_utc(now) if now is not None else utc_now()
        start = end - time_range.lookback
        period_seconds = int(resolve_period(query.range_token).total_seconds())
        params = {
            "Namespace": self.namespace,
            "MetricName": query.metric_name,
            "Dimensions": [{"Name": self.dimension, "Value": query.resource_id}],
            "StartTime": start,
            "EndTime": end,
            "Period": period_seconds,
            "Statistics": ["Average"],
            "Unit": get_metric_unit(query.metric_name),
        }
        logger.info(
            f"Requesting {start.isoformat()} .. {end.isoformat()} every {period_seconds}s",
            extra={"resource_id": query.resource_id, "metric_name": query.metric_name},
        )

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self._get_statistics, query.scope, params),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise RetrievalError(
                f"CloudWatch did not answer within {self.timeout:g}s"
            ) from exc
        except (BotoCoreError, ClientError) as exc:
            raise RetrievalError(f"Failed to fetch metrics: {exc}") from exc

        points = [
            DataPoint(timestamp=ensure_utc(dp["Timestamp"]), value=float(dp["Average"]))
            for dp in response.get("Datapoints") or []
        ]
        # CloudWatch does not return datapoints in time order.
        points.sort(key=lambda p: p.timestamp)
        logger.info(
            f"CloudWatch returned {len(points)} datapoints",
            extra={"resource_id": query.resource_id, "points": len(points)},
        )
        return points

    def _get_statistics(self, region: str, params: dict) -> dict:
        client = self._client_factory(region)
        return client.get_metric_statistics(**params)
