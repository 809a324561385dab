"""Request ID middleware.

Every extraction request fans out into several concurrent fetch tasks.
The ID is kept in a ContextVar, which asyncio copies into each task, so
log lines emitted by the fetcher, extractor and orchestrator for one
request share the same ``request_id``.
"""

import contextvars
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            request_id_var.reset(token)


def get_request_id() -> str:
    """Current request ID, or an empty string outside a request (e.g. the CLI)."""
    return request_id_var.get()
