"""Range tokens: how far back to look and how coarsely to sample."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType


@dataclass(frozen=True)
class TimeRangeSpec:
    token: str
    lookback: timedelta
    sample_period: timedelta

    @property
    def period_seconds(self) -> int:
        return int(self.sample_period.total_seconds())


def _spec(token: str, lookback: timedelta, period: timedelta) -> TimeRangeSpec:
    return TimeRangeSpec(token=token, lookback=lookback, sample_period=period)


# Shortest to longest. Periods keep each window within a few hundred samples.
TIME_RANGES = MappingProxyType(
    {
        "1h": _spec("1h", timedelta(hours=1), timedelta(minutes=1)),
        "6h": _spec("6h", timedelta(hours=6), timedelta(minutes=5)),
        "12h": _spec("12h", timedelta(hours=12), timedelta(minutes=10)),
        "24h": _spec("24h", timedelta(hours=24), timedelta(minutes=30)),
        "7d": _spec("7d", timedelta(days=7), timedelta(hours=1)),
        "30d": _spec("30d", timedelta(days=30), timedelta(hours=6)),
    }
)

DEFAULT_SAMPLE_PERIOD = timedelta(minutes=1)


def resolve_time_range(token: str | None) -> TimeRangeSpec | None:
    """Look up a range token. ``None`` means the token is not recognized."""
    if token is None:
        return None
    return TIME_RANGES.get(token)


def resolve_period(token: str | None) -> timedelta:
    """Sampling period for a token.

    Unlike :func:`resolve_time_range`, an unknown token does not fail here: it
    falls back to the finest granularity.
    """
    spec = TIME_RANGES.get(token) if token is not None else None
    if spec is None:
        return DEFAULT_SAMPLE_PERIOD
    return spec.sample_period


def sample_count(spec: TimeRangeSpec) -> int:
    """Number of aggregated points a full window yields."""
    return int(spec.lookback / spec.sample_period)
