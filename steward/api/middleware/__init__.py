"""API middleware."""

from steward.api.middleware.context import RequestContextMiddleware, get_request_id

__all__ = ["RequestContextMiddleware", "get_request_id"]
