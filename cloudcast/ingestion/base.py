"""Base interfaces for metric retrieval."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cloudcast.forecasting.time_range import TimeRangeSpec


@dataclass
class DataPoint:
    """One aggregated observation (the period average)."""

    timestamp: datetime
    value: float


class MetricQuery(BaseModel):
    """Identifies one series at the backend plus the window to read.

    Every field is required by the pipeline; they are optional here so that a
    missing field is reported with one descriptive message instead of a
    schema error per field. Numeric identifiers are accepted as strings.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    resource_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("resource_id", "resourceId", "instanceId"),
    )
    scope: str | None = Field(
        default=None,
        validation_alias=AliasChoices("scope", "region"),
    )
    metric_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("metric_name", "metricName", "metric"),
    )
    range_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("range_token", "rangeToken", "timeRange"),
    )

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("resource_id", "scope", "metric_name", "range_token")
            if not (getattr(self, name) or "").strip()
        ]


class MetricSource(ABC):
    """Abstract base class for monitoring backends.

    A backend only needs "average value per period for a named metric of one
    resource over a time window" semantics.
    """

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Identifier for this backend."""
        ...

    @abstractmethod
    async def fetch_datapoints(
        self,
        query: MetricQuery,
        time_range: TimeRangeSpec,
        now: datetime | None = None,
    ) -> list[DataPoint]:
        """Fetch period averages, oldest first."""
        ...
