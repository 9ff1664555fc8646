"""Per-request neural forecaster for metric series.

Each call trains a small feed-forward regressor that maps a normalized time
index ``i / n`` to the normalized metric value, then extrapolates the index a
few steps past the last observation. The model is discarded after the call.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Sequence

import numpy as np
from sklearn.metrics import mean_squared_error
from sklearn.model_selection import train_test_split
from sklearn.neural_network import MLPRegressor

from cloudcast.config import settings
from cloudcast.errors import TrainingError
from cloudcast.forecasting.normalizer import denormalize, normalize

logger = logging.getLogger("cloudcast.forecasting")

FORECAST_HORIZON = 5
MIN_OBSERVATIONS = 3
HIDDEN_LAYERS = (12, 8)
DEFAULT_INTERVAL = timedelta(minutes=1)

# Rate, count and byte metrics cannot go below zero.
NON_NEGATIVE_METRICS = frozenset(
    {
        "CPUUtilization",
        "MemoryUtilization",
        "NetworkIn",
        "NetworkOut",
        "DiskReadOps",
        "DiskWriteOps",
        "DiskReadBytes",
        "DiskWriteBytes",
        "StatusCheckFailed",
    }
)
PERCENT_METRICS = frozenset({"CPUUtilization", "MemoryUtilization"})


@dataclass
class ForecastPoint:
    timestamp: datetime
    value: float


@dataclass
class EpochSummary:
    epoch: int
    loss: float
    val_loss: float | None


@dataclass
class TrainingSummary:
    epochs: int
    loss: float
    val_loss: float | None
    duration_ms: float


ProgressHook = Callable[[EpochSummary], None]


class MetricRegressor:
    """Two hidden ReLU layers, linear output, squared error, Adam."""

    def __init__(
        self,
        epochs: int = 200,
        learning_rate: float = 0.01,
        batch_size: int = 32,
        validation_fraction: float = 0.2,
        random_state: int | None = None,
    ) -> None:
        self.epochs = epochs
        self.learning_rate = learning_rate
        self.batch_size = batch_size
        self.validation_fraction = validation_fraction
        self.random_state = random_state
        self._model: MLPRegressor | None = None

    def fit(
        self,
        x: np.ndarray,
        y: np.ndarray,
        progress: ProgressHook | None = None,
    ) -> TrainingSummary:
        """Train for ``epochs`` passes and return the final losses.

        The trailing ``validation_fraction`` of the samples is held out and
        scored after every pass; the remaining samples are shuffled into
        mini-batches each pass.
        """
        x = np.asarray(x, dtype=np.float64).reshape(-1, 1)
        y = np.asarray(y, dtype=np.float64).ravel()

        if len(x) >= 2 and self.validation_fraction > 0:
            x_train, x_val, y_train, y_val = train_test_split(
                x, y, test_size=self.validation_fraction, shuffle=False
            )
        else:
            x_train, y_train = x, y
            x_val = y_val = None

        self._model = MLPRegressor(
            hidden_layer_sizes=HIDDEN_LAYERS,
            activation="relu",
            solver="adam",
            alpha=0.0,
            learning_rate_init=self.learning_rate,
            batch_size=max(1, min(self.batch_size, len(x_train))),
            shuffle=True,
            random_state=self.random_state,
        )

        started = time.perf_counter()
        loss = float("nan")
        val_loss: float | None = None
        for epoch in range(self.epochs):
            self._model.partial_fit(x_train, y_train)
            loss = float(mean_squared_error(y_train, self._model.predict(x_train)))
            if x_val is not None:
                val_loss = float(mean_squared_error(y_val, self._model.predict(x_val)))

            if epoch % 50 == 0:
                logger.debug(f"Epoch {epoch}: loss = {loss:.4f}")
            if progress is not None:
                progress(EpochSummary(epoch=epoch, loss=loss, val_loss=val_loss))

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if not np.isfinite(loss):
            raise TrainingError(f"training diverged (loss={loss})")

        return TrainingSummary(
            epochs=self.epochs,
            loss=loss,
            val_loss=val_loss,
            duration_ms=duration_ms,
        )

    def predict(self, x: np.ndarray) -> np.ndarray:
        if self._model is None:
            raise TrainingError("model has not been trained")
        return self._model.predict(np.asarray(x, dtype=np.float64).reshape(-1, 1))


def estimate_interval(timestamps: Sequence[datetime]) -> timedelta:
    """Mean spacing of the observed series, or one minute when unknown."""
    if len(timestamps) < 3:
        return DEFAULT_INTERVAL

    deltas = [
        (timestamps[i] - timestamps[i - 1]).total_seconds()
        for i in range(1, len(timestamps))
    ]
    mean_seconds = float(np.mean(np.array(deltas, dtype=np.float64)))
    if not mean_seconds > 0:
        return DEFAULT_INTERVAL
    return timedelta(seconds=mean_seconds)


def clamp_value(value: float, metric_name: str) -> float:
    if metric_name in NON_NEGATIVE_METRICS:
        value = max(0.0, value)
    if metric_name in PERCENT_METRICS:
        value = min(100.0, value)
    return value


class Forecaster:
    """Trains a disposable :class:`MetricRegressor` and extrapolates it."""

    def __init__(
        self,
        horizon: int = FORECAST_HORIZON,
        epochs: int = 200,
        learning_rate: float = 0.01,
        batch_size: int = 32,
        validation_fraction: float = 0.2,
        random_state: int | None = None,
    ) -> None:
        self.horizon = horizon
        self.epochs = epochs
        self.learning_rate = learning_rate
        self.batch_size = batch_size
        self.validation_fraction = validation_fraction
        self.random_state = random_state

    @classmethod
    def from_settings(cls) -> "Forecaster":
        return cls(
            epochs=settings.forecast_epochs,
            learning_rate=settings.forecast_learning_rate,
            batch_size=settings.forecast_batch_size,
            validation_fraction=settings.forecast_validation_fraction,
            random_state=settings.forecast_random_seed,
        )

    def forecast(
        self,
        values: Sequence[float],
        timestamps: Sequence[datetime],
        metric_name: str,
        progress: ProgressHook | None = None,
    ) -> list[ForecastPoint]:
        """Predict the next ``horizon`` points.

        Fewer than three observations carry no usable trend and produce an
        empty forecast. Training or inference failures also produce an empty
        forecast; they are logged, never raised.
        """
        try:
            return self.train_and_predict(values, timestamps, metric_name, progress)
        except TrainingError:
            logger.exception(
                "forecast failed; returning no predictions",
                extra={"metric_name": metric_name, "points": len(values)},
            )
            return []

    def train_and_predict(
        self,
        values: Sequence[float],
        timestamps: Sequence[datetime],
        metric_name: str,
        progress: ProgressHook | None = None,
    ) -> list[ForecastPoint]:
        """Like :meth:`forecast`, but failures raise :class:`TrainingError`."""
        if len(values) < MIN_OBSERVATIONS:
            return []

        try:
            return self._train_and_predict(values, timestamps, metric_name, progress)
        except TrainingError:
            raise
        except Exception as exc:
            raise TrainingError(f"{type(exc).__name__}: {exc}") from exc

    def _train_and_predict(
        self,
        values: Sequence[float],
        timestamps: Sequence[datetime],
        metric_name: str,
        progress: ProgressHook | None,
    ) -> list[ForecastPoint]:
        if len(values) != len(timestamps):
            raise TrainingError(
                f"{len(values)} values but {len(timestamps)} timestamps"
            )

        n = len(values)
        targets, context = normalize(values)
        positions = np.arange(n, dtype=np.float64) / n

        regressor = MetricRegressor(
            epochs=self.epochs,
            learning_rate=self.learning_rate,
            batch_size=self.batch_size,
            validation_fraction=self.validation_fraction,
            random_state=self.random_state,
        )
        summary = regressor.fit(positions, targets, progress=progress)
        logger.info(
            f"Model training completed in {summary.duration_ms:.2f}ms "
            f"(loss={summary.loss:.4f})",
            extra={"metric_name": metric_name, "points": n},
        )

        future = np.array(
            [(n - 1 + step) / n for step in range(1, self.horizon + 1)],
            dtype=np.float64,
        )
        raw = regressor.predict(future)
        if not np.all(np.isfinite(raw)):
            raise TrainingError("model produced non-finite predictions")

        interval = estimate_interval(timestamps)
        last = timestamps[-1]
        return [
            ForecastPoint(
                timestamp=last + interval * step,
                value=clamp_value(denormalize(float(raw[step - 1]), context), metric_name),
            )
            for step in range(1, self.horizon + 1)
        ]
