"""Request and response models for task endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from steward.api.models.base import CamelModel
from steward.decisions.models import DecisionLogEntry, DecisionOutcome
from steward.orchestration.reprocess import REPROCESS_HISTORY
from steward.tasks.models import ActionType, Task, TaskStatus


class OverrideRequest(CamelModel):
    """Body of POST /v1/tasks/{task_id}/override."""

    overridden: bool = Field(..., description="True pauses the agent, False resumes it")
    reason: str | None = Field(default=None, max_length=2000)
    actor_id: str | None = Field(default=None, description="User performing the change")
    correlation_id: str | None = Field(default=None)


class ReprocessRequest(CamelModel):
    """Body of POST /v1/tasks/{task_id}/reprocess."""

    requested_by_user_id: str = Field(..., min_length=1)
    reason: str | None = Field(default=None, max_length=2000)
    correlation_id: str | None = Field(default=None)


class AssignTaskRequest(CamelModel):
    """Body of POST /v1/tasks.

    Pipeline, stage, priority and title default to the template's hints.
    """

    org_id: str = Field(..., min_length=1)
    template_id: str = Field(..., min_length=1)
    intake_id: str | None = Field(default=None, description="Originating intake request")
    title: str = Field(default="", max_length=500)
    data: dict[str, Any] = Field(default_factory=dict)
    pipeline_key: str | None = None
    stage_key: str | None = None
    priority: int | None = Field(default=None, ge=1, le=5)
    correlation_id: str | None = None


class DataCorrectionRequest(CamelModel):
    """Body of POST /v1/tasks/{task_id}/corrections. At least one change is required."""

    data: dict[str, Any] = Field(default_factory=dict)
    completed_steps: list[str] = Field(default_factory=list)
    blocker: str | None = Field(default=None, max_length=2000)
    unblock: bool = False
    correlation_id: str | None = None


class ExternalTriggerRequest(CamelModel):
    """Body of POST /v1/tasks/{task_id}/triggers."""

    source: str = Field(..., min_length=1, description="Name of the external system")
    changes: dict[str, Any] = Field(
        default_factory=dict,
        description="Change keys carried to the evaluation (data, completedSteps, ...)",
    )
    correlation_id: str | None = None


class CloseRequest(CamelModel):
    """Body of POST /v1/tasks/{task_id}/close."""

    actor_id: str | None = Field(default=None)
    reason: str | None = Field(default=None, max_length=2000)


class OverrideView(CamelModel):
    overridden: bool
    reason: str | None = None
    by_user_id: str | None = None
    at: datetime | None = None


class TimelineView(CamelModel):
    started_at: datetime | None = None
    completed_at: datetime | None = None
    closed_at: datetime | None = None
    sla_warned_at: datetime | None = None
    sla_breached_at: datetime | None = None


class TaskView(CamelModel):
    """Task snapshot as returned by the API."""

    id: UUID
    org_id: str
    template_id: str
    intake_id: str | None = None
    title: str
    pipeline_key: str | None = None
    stage_key: str | None = None
    status: TaskStatus
    priority: int
    override: OverrideView
    data: dict[str, Any] = Field(default_factory=dict)
    completed_steps: list[str] = Field(default_factory=list)
    reprocess_request_count: int = 0
    timeline: TimelineView
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskView":
        return cls(
            id=task.id,
            org_id=task.org_id,
            template_id=task.template_id,
            intake_id=task.intake_id,
            title=task.title,
            pipeline_key=task.pipeline_key,
            stage_key=task.stage_key,
            status=task.status,
            priority=task.priority,
            override=OverrideView(**task.override.model_dump()),
            data=task.data,
            completed_steps=sorted(task.completed_steps),
            reprocess_request_count=len(task.history.get(REPROCESS_HISTORY, [])),
            timeline=TimelineView(**task.timeline.model_dump()),
            version=task.version,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class DecisionView(CamelModel):
    """One decision log entry."""

    id: UUID
    task_id: UUID
    event_id: UUID | None = None
    event_type: str
    correlation_id: str | None = None
    action: ActionType
    outcome: DecisionOutcome
    from_status: TaskStatus
    to_status: TaskStatus
    rationale: str
    template_version: int | None = None
    agent_config_hash: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime

    @classmethod
    def from_entry(cls, entry: DecisionLogEntry) -> "DecisionView":
        return cls(
            id=entry.id,
            task_id=entry.task_id,
            event_id=entry.event_id,
            event_type=entry.event_type,
            correlation_id=entry.correlation_id,
            action=entry.action,
            outcome=entry.outcome,
            from_status=entry.from_status,
            to_status=entry.to_status,
            rationale=entry.rationale,
            template_version=entry.template_version,
            agent_config_hash=entry.agent_config_hash,
            metadata=entry.metadata,
            timestamp=entry.timestamp,
        )


class TaskDetailResponse(CamelModel):
    """Task snapshot with its most recent decisions, newest first."""

    task: TaskView
    decisions: list[DecisionView] = Field(default_factory=list)


class DecisionListResponse(CamelModel):
    items: list[DecisionView] = Field(default_factory=list)
    total: int = 0


class TaskActionResponse(CamelModel):
    """Outcome of a task creation, trigger, override, reprocess or close call."""

    task: TaskView
    message: str
    suppressed: bool = Field(
        default=False, description="True while agent actions on the task are suppressed"
    )
    event_id: UUID | None = Field(default=None, description="Published event, if any")
    correlation_id: str | None = None
    decision: DecisionView | None = Field(
        default=None, description="Decision logged by a manual close"
    )
