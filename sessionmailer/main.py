import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from sessionmailer.api.v1.health import router as health_router
from sessionmailer.api.v1.router import api_router
from sessionmailer.config import settings
from sessionmailer.core.exceptions import ValidationError
from sessionmailer.core.logging_config import configure_logging
from sessionmailer.core.metrics import extract_requests_total
from sessionmailer.middleware.request_id import RequestIDMiddleware

# Before any module logger emits
configure_logging(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"sessionmailer@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Each extract request opens and closes its own browser pool
    logger.info(
        f"{settings.APP_NAME} v{settings.APP_VERSION} up "
        f"(fetch mode={settings.FETCH_MODE}, source domain={settings.ALLOWED_SOURCE_DOMAIN})"
    )
    yield
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="SessionMailer - turn photography booking pages into ready-to-send, "
    "branded HTML emails. Extract one or more sessions, then recompose with new "
    "colors, fonts or hero images.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Stores X-Request-ID in a ContextVar for the logging filter
app.add_middleware(RequestIDMiddleware)

# Email documents compress well
app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info(f"Rejected {request.url.path}: {exc}")
    extract_requests_total.labels(status="invalid").inc()
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc), "sessions": []},
    )


app.include_router(api_router)
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "endpoints": ["/v1/sessions/extract", "/v1/sessions/compose", "/health", "/metrics"],
    }
