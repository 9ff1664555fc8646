"""CloudCast — FastAPI application entry point."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from cloudcast.config import settings
from cloudcast.logging_config import setup_logging

from cloudcast.api.metrics import router as metrics_router, service as forecast_service
from cloudcast.api.logs import router as logs_router
from cloudcast.observability.metrics import metrics

logger = logging.getLogger("cloudcast")

VERSION = "1.0.0"

# Rate limiter
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


def _startup_checks() -> None:
    """Log warnings for misconfigured or missing settings."""
    if not settings.has_aws_credentials:
        logger.warning("⚠  AWS credentials not configured — metric requests will fail with 500")
    else:
        logger.info(f"✓ CloudWatch namespace: {settings.cloudwatch_namespace}")

    if settings.is_production and not settings.cors_origins_list:
        logger.warning("⚠  APP_ENV=production but CORS_ORIGINS is empty")

    if settings.forecast_random_seed is None:
        logger.info("○ FORECAST_RANDOM_SEED unset — forecasts are not reproducible across requests")

    logger.info(
        f"  Training: {settings.training_workers} workers, "
        f"{settings.training_timeout_seconds:g}s timeout, {settings.forecast_epochs} epochs"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    setup_logging(settings.log_level)
    _startup_checks()
    logger.info(f"✦ CloudCast API started in {settings.app_env} mode")

    yield

    forecast_service.shutdown()
    logger.info("✦ CloudCast API shutting down")


app = FastAPI(
    title="CloudCast",
    description="Cloud metric retrieval with short-horizon forecasts",
    version=VERSION,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)


# Request tracing + access log middleware
@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response: Response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Request-ID"] = request_id
    metrics.observe_request(request.url.path, response.status_code, duration_ms)
    logger.info(
        "request completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


# Security headers middleware
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# Routers
app.include_router(metrics_router)
app.include_router(logs_router)


@app.get("/")
async def root():
    return JSONResponse(
        {
            "service": "cloudcast-api",
            "status": "ok",
            "endpoints": {
                "metrics": "/api/metrics",
                "health": "/api/health",
                "docs": "/docs",
            },
        }
    )


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy" if settings.has_aws_credentials else "degraded",
        "service": "cloudcast",
        "version": VERSION,
        "aws_credentials": settings.has_aws_credentials,
    }


@app.get("/api/health/live")
async def liveness_check():
    return {"status": "alive", "service": "cloudcast"}


@app.get("/api/health/ready")
async def readiness_check(response: Response):
    ready = settings.has_aws_credentials
    if not ready:
        response.status_code = 503

    return {
        "status": "ready" if ready else "not_ready",
        "checks": {"aws_credentials": ready},
    }


@app.get("/api/stats")
async def get_stats():
    return {
        "service": "cloudcast",
        "version": VERSION,
        "metrics": metrics.snapshot(),
    }


def run() -> None:
    import uvicorn

    uvicorn.run("cloudcast.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
