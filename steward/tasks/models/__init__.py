"""Task domain models."""

from steward.tasks.models.enums import (
    AUTONOMOUS_ACTIONS,
    TERMINAL_STATUSES,
    ActionType,
    TaskStatus,
)
from steward.tasks.models.task import (
    STEPS_KEY,
    Task,
    TaskOverride,
    TaskTimeline,
    completed_step_ids,
    utc_now,
)
from steward.tasks.models.template import (
    AgentConfig,
    CompletionCriteria,
    RequiredSteps,
    RoutingHints,
    SLAHints,
    TargetStatus,
    TaskStep,
    TaskTemplate,
)

__all__ = [
    "AUTONOMOUS_ACTIONS",
    "STEPS_KEY",
    "TERMINAL_STATUSES",
    "ActionType",
    "AgentConfig",
    "CompletionCriteria",
    "RequiredSteps",
    "RoutingHints",
    "SLAHints",
    "TargetStatus",
    "Task",
    "TaskOverride",
    "TaskStatus",
    "TaskStep",
    "TaskTemplate",
    "TaskTimeline",
    "completed_step_ids",
    "utc_now",
]
