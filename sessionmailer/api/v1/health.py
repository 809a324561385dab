import json
import logging

from fastapi import APIRouter
from fastapi.responses import Response

from sessionmailer.config import settings
from sessionmailer.core.metrics import get_metrics, get_metrics_content_type
from sessionmailer.services.fetcher import FETCH_MODES

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Liveness check",
    description="Returns HTTP 200 if the application process is running.",
)
async def liveness():
    return {"status": "healthy"}


@router.get(
    "/health/ready",
    summary="Readiness check",
    description="Reports whether the service configuration is usable. Browsers are launched "
    "per request, so no browser is started here; HTTP 503 if the configuration is invalid.",
)
async def readiness():
    """Readiness probe: validates fetch configuration."""
    checks = {
        "fetch_mode": "ok"
        if settings.FETCH_MODE in FETCH_MODES
        else f"error: unknown mode {settings.FETCH_MODE!r}",
        "source_domain": "ok" if settings.ALLOWED_SOURCE_DOMAIN else "error: not configured",
        "concurrency": "ok"
        if settings.MAX_CONCURRENT_FETCHES > 0 and settings.BROWSER_POOL_SIZE > 0
        else "error: limits must be positive",
    }

    all_ok = all(v == "ok" for v in checks.values())
    return Response(
        content=json.dumps({"status": "ready" if all_ok else "not ready", "checks": checks}),
        status_code=200 if all_ok else 503,
        media_type="application/json",
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Application metrics in Prometheus exposition format; 404 when disabled.",
)
async def metrics():
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
