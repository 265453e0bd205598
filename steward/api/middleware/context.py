"""Request context middleware for observability."""

import uuid
from collections.abc import Callable
from contextvars import ContextVar

import structlog
from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from steward.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Request id of the request being served, if any
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Get the id of the current request, or None outside a request."""
    return _request_id.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware that binds request context for observability.

    Reuses the caller's ``X-Request-ID`` when present, binds it and the
    OpenTelemetry trace id into structlog contextvars so every log line
    of the request carries them, and echoes both in response headers.
    """

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Process request and bind context."""
        span_context = trace.get_current_span().get_span_context()
        trace_id = format(span_context.trace_id, "032x") if span_context.is_valid else ""

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = _request_id.set(request_id)
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            trace_id=trace_id or request_id,
        )

        logger.debug(
            "request_started",
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)  # type: ignore[misc]
        finally:
            _request_id.reset(token)

        logger.debug(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        if trace_id:
            response.headers["X-Trace-ID"] = trace_id

        return response  # type: ignore[no-any-return]
