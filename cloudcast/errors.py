"""Error taxonomy for the metric forecast pipeline."""

from __future__ import annotations


class ForecastServiceError(Exception):
    """Base error; ``status_code`` is the HTTP status the API layer reports."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class QueryValidationError(ForecastServiceError):
    """Missing or invalid request input. Client-correctable."""

    status_code = 400


class ConfigurationError(ForecastServiceError):
    """Missing credentials or an unusable backend configuration."""

    status_code = 500


class RetrievalError(ForecastServiceError):
    """The monitoring backend call failed or timed out."""

    status_code = 502


class TrainingError(ForecastServiceError):
    """Numeric or training failure. Always degraded to an empty forecast."""

    status_code = 500
