"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standardized error codes for API responses.

    These codes provide machine-readable error identification across
    all API endpoints.
    """

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed (malformed JSON, bad interval, out-of-range duration)."""

    NOT_FOUND = "NOT_FOUND"
    """The referenced task, template or user does not exist."""

    CONFLICT_STATE = "CONFLICT_STATE"
    """The operation is not allowed in the task's current state."""

    EVALUATION_TIMEOUT = "EVALUATION_TIMEOUT"
    """The task lock or the evaluation exceeded its time bound."""

    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"
    """A store or the event bus failed; the operation may not have completed."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


class ErrorDetail(BaseModel):
    """Detailed error information for validation errors.

    Provides field-level error details for request validation failures.
    """

    field: str | None = None
    """The field that caused the error, if applicable."""

    message: str
    """Human-readable error description."""


class ErrorBody(BaseModel):
    """Error body content for API error responses."""

    code: ErrorCode
    """Machine-readable error code."""

    message: str
    """Human-readable error message."""

    details: list[ErrorDetail] | None = None
    """Additional error details for validation failures."""


class ErrorResponse(BaseModel):
    """Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "NOT_FOUND",
                "message": "Task 3f2c... not found"
            }
        }
    """

    error: ErrorBody
