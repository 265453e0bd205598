"""API exception hierarchy for consistent error handling.

All API exceptions inherit from StewardAPIError, which provides
status_code and error_code attributes used by the global exception
handler to generate consistent error responses. Engine errors raised by
the services are translated with :func:`from_engine_error`.
"""

from steward.api.models.errors import ErrorCode
from steward.errors import (
    ConflictStateError,
    DependencyError,
    EvaluationTimeoutError,
    NotFoundError,
    StewardError,
    ValidationError,
)


class StewardAPIError(Exception):
    """Base exception for all API errors.

    Subclasses set status_code and error_code to define the HTTP response.
    The global exception handler uses these to generate ErrorResponse.
    """

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class InvalidRequestError(StewardAPIError):
    """Raised when request validation fails."""

    status_code = 400
    error_code = ErrorCode.INVALID_REQUEST


class ResourceNotFoundError(StewardAPIError):
    """Raised when a task, template or user doesn't exist."""

    status_code = 404
    error_code = ErrorCode.NOT_FOUND


class ConflictStateAPIError(StewardAPIError):
    """Raised when the task's state forbids the operation."""

    status_code = 409
    error_code = ErrorCode.CONFLICT_STATE


class EvaluationTimeoutAPIError(StewardAPIError):
    """Raised when a task lock or evaluation timed out."""

    status_code = 504
    error_code = ErrorCode.EVALUATION_TIMEOUT


class DependencyAPIError(StewardAPIError):
    """Raised when a store or the event bus failed."""

    status_code = 502
    error_code = ErrorCode.DEPENDENCY_ERROR


_ENGINE_ERRORS: tuple[tuple[type[StewardError], type[StewardAPIError]], ...] = (
    (ValidationError, InvalidRequestError),
    (NotFoundError, ResourceNotFoundError),
    (ConflictStateError, ConflictStateAPIError),
    (EvaluationTimeoutError, EvaluationTimeoutAPIError),
    (DependencyError, DependencyAPIError),
)


def from_engine_error(error: StewardError) -> StewardAPIError:
    """Translate an engine error into its API counterpart.

    Args:
        error: Error raised by a store, the bus or a service

    Returns:
        API error carrying the matching status and error code
    """
    for engine_type, api_type in _ENGINE_ERRORS:
        if isinstance(error, engine_type):
            field = error.field if isinstance(error, ValidationError) else None
            return api_type(error.message, field=field)
    return StewardAPIError(error.message)
