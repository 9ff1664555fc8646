"""Structured logging configuration for CloudCast."""

from __future__ import annotations

import logging
import sys

from cloudcast.utils.time import utc_now

REQUEST_KEYS = ("request_id", "method", "path", "status_code", "duration_ms")
PIPELINE_KEYS = ("resource_id", "metric_name", "range_token", "points")


class KeyValueFormatter(logging.Formatter):
    """Formats records as one line of ``[LEVEL] timestamp message key=value``."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"[{record.levelname:<7}]",
            utc_now().isoformat(),
            f"{record.name}:",
            record.getMessage(),
        ]

        # Request and pipeline context arrive through ``extra=``.
        for key in REQUEST_KEYS + PIPELINE_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                parts.append(f"{key}={value}")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[1]:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application."""
    root_logger = logging.getLogger()

    # Avoid adding handlers multiple times
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(KeyValueFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
