"""Enums for the task domain."""

from enum import Enum


class TaskStatus(str, Enum):
    """Lifecycle status of a task.

    NOT_STARTED -> IN_PROGRESS -> {BLOCKED <-> IN_PROGRESS} -> {COMPLETED | CLOSED}
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"  # Completion criteria met
    CLOSED = "closed"  # Closed manually

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses never transition again."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.CLOSED}
)


class ActionType(str, Enum):
    """Actions an evaluation can decide on."""

    ADVANCE = "advance"  # Move to the next status
    UPDATE = "update"  # Stay, with an updated payload
    BLOCK = "block"  # Move to BLOCKED with a reason
    CLOSE = "close"  # Manual close, never chosen autonomously
    NO_OP = "no_op"  # Recorded, intentionally no state change


AUTONOMOUS_ACTIONS: frozenset[ActionType] = frozenset(
    {ActionType.ADVANCE, ActionType.UPDATE, ActionType.BLOCK}
)
