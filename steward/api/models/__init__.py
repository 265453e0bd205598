"""API request and response models."""

from steward.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from steward.api.models.health import ComponentHealth, HealthResponse

__all__ = [
    "ComponentHealth",
    "ErrorBody",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
]
