"""CloudCast configuration loaded from environment variables."""

from __future__ import annotations

import json
from pydantic_settings import BaseSettings
from pydantic import Field, AliasChoices


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5000, alias="PORT")
    cors_origins: str = Field(default='["http://localhost:3000"]', alias="CORS_ORIGINS")
    app_env: str = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV"),
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    rate_limit: str = Field(default="100/minute", alias="RATE_LIMIT")

    # AWS / CloudWatch (credentials are required for metric retrieval)
    aws_access_key_id: str = Field(default="", alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field(default="", alias="AWS_SECRET_ACCESS_KEY")
    aws_session_token: str = Field(default="", alias="AWS_SESSION_TOKEN")
    cloudwatch_namespace: str = Field(default="AWS/EC2", alias="CLOUDWATCH_NAMESPACE")
    cloudwatch_dimension: str = Field(default="InstanceId", alias="CLOUDWATCH_DIMENSION")
    fetch_timeout_seconds: float = Field(default=15.0, alias="FETCH_TIMEOUT_SECONDS")

    # Forecast model
    training_timeout_seconds: float = Field(default=30.0, alias="TRAINING_TIMEOUT_SECONDS")
    training_workers: int = Field(default=2, alias="TRAINING_WORKERS")
    forecast_epochs: int = Field(default=200, alias="FORECAST_EPOCHS")
    forecast_learning_rate: float = Field(default=0.01, alias="FORECAST_LEARNING_RATE")
    forecast_batch_size: int = Field(default=32, alias="FORECAST_BATCH_SIZE")
    forecast_validation_fraction: float = Field(default=0.2, alias="FORECAST_VALIDATION_FRACTION")
    # Unset means every request initializes the network differently.
    forecast_random_seed: int | None = Field(default=None, alias="FORECAST_RANDOM_SEED")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"production", "prod"}

    @property
    def has_aws_credentials(self) -> bool:
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    @property
    def cors_origins_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        # Supports JSON list format and comma-separated format.
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(origin).strip() for origin in parsed if str(origin).strip()]
            except json.JSONDecodeError:
                pass

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
