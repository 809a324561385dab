"""Session extraction and email composition endpoints."""

import logging

from fastapi import APIRouter

from sessionmailer.core.metrics import extract_requests_total
from sessionmailer.schemas.extract import (
    ComposeSessionsRequest,
    ExtractSessionsRequest,
    ExtractSessionsResponse,
)
from sessionmailer.services.orchestrator import (
    SessionOrchestrator,
    apply_hero_overrides,
    compose_email,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_orchestrator() -> SessionOrchestrator:
    return SessionOrchestrator()


@router.post(
    "/extract",
    response_model=ExtractSessionsResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Extract sessions and compose an email",
    description="Fetch one or more booking pages, extract their session details and return "
    "them together with a ready-to-send HTML email. A URL that cannot be fetched still "
    "yields a session (with fallback content and `error` set); only an invalid request "
    "fails as a whole, with HTTP 400.",
)
async def extract_sessions(request: ExtractSessionsRequest):
    urls = request.target_urls()
    branding = request.branding()
    logger.info(f"Extracting {len(urls)} session(s)")

    result = await get_orchestrator().process(urls, branding)

    failed = sum(1 for s in result.sessions if s.error)
    extract_requests_total.labels(status="partial" if failed else "success").inc()
    if failed:
        logger.warning(f"{failed} of {len(result.sessions)} session(s) fell back to defaults")

    return ExtractSessionsResponse(
        success=True,
        sessions=result.sessions,
        email_html=result.email_html,
        raw_html=result.raw_html,
        is_multiple=result.is_multiple,
    )


@router.post(
    "/compose",
    response_model=ExtractSessionsResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Recompose an email from extracted sessions",
    description="Re-render the email for sessions returned earlier by `/extract`, e.g. after "
    "the user changed colors, fonts or a hero image. Nothing is fetched; identical input "
    "produces byte-identical HTML.",
)
async def compose_sessions(request: ComposeSessionsRequest):
    branding = request.branding()
    sessions = [apply_hero_overrides(session, branding) for session in request.sessions]
    if not sessions:
        return ExtractSessionsResponse(success=False, error="At least one session is required")

    email_html = compose_email(sessions, branding)
    return ExtractSessionsResponse(
        success=True,
        sessions=sessions,
        email_html=email_html,
        raw_html=email_html,
        is_multiple=len(sessions) > 1,
    )
