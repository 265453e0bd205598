"""Error hierarchy for the orchestration and scheduling engine.

Stores, the event bus and the services raise these errors so that callers
(the HTTP layer, bus consumers, tests) can branch on the failure class
without knowing which backend produced it.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


class StewardError(Exception):
    """Base exception for all engine errors.

    Backend-specific failures are wrapped in one of the subclasses,
    keeping the original exception on ``cause``.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(StewardError):
    """Raised on malformed input.

    Examples:
        - Interval whose end is not after its start
        - Suggestion duration outside [15, 480] minutes
        - Unknown enum value

    Never retried.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.field = field


class NotFoundError(StewardError):
    """Raised when a referenced task, template or user does not exist."""

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        entity_id: Any = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.entity = entity
        self.entity_id = entity_id


class ConflictStateError(StewardError):
    """Raised when a requested transition violates the task state machine.

    Evaluation records these as rejected no-op decisions instead of
    raising; explicit manual operations surface them to the caller.
    """


class StaleTaskVersionError(ConflictStateError):
    """Raised when an optimistic write targets an outdated task version."""

    def __init__(
        self,
        message: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version


class EvaluationTimeoutError(StewardError):
    """Raised when a per-task evaluation exceeds its time bound.

    The per-task lock is released before this propagates, so the bus may
    redeliver the triggering event.
    """

    def __init__(self, message: str, timeout_seconds: float | None = None) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class DependencyError(StewardError):
    """Raised when a persistence or event-bus call fails.

    The operation that triggered it must not be assumed to have completed.
    """


@contextmanager
def dependency_boundary(operation: str) -> Iterator[None]:
    """Wrap backend failures raised inside the block in DependencyError.

    Engine errors pass through unchanged.

    Args:
        operation: Short description used in the error message
    """
    try:
        yield
    except StewardError:
        raise
    except Exception as e:
        raise DependencyError(f"{operation} failed: {e}", cause=e) from e
