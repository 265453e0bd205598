"""Task instance models."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from steward.tasks.models.enums import TaskStatus

STEPS_KEY = "steps"
COMPLETE_STEP_VALUES = frozenset({"completed", "complete", "done"})


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class TaskOverride(BaseModel):
    """Human override state, always replaced as a single unit.

    While ``overridden`` holds, every evaluation of the task is a recorded
    no-op. Clearing the override clears reason, actor and timestamp with it.
    """

    model_config = ConfigDict(frozen=True)

    overridden: bool = False
    reason: str | None = None
    by_user_id: str | None = None
    at: datetime | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "TaskOverride":
        if self.overridden and self.at is None:
            raise ValueError("an active override requires a timestamp")
        if not self.overridden and (
            self.reason is not None or self.by_user_id is not None or self.at is not None
        ):
            raise ValueError("a cleared override must not carry reason, actor or timestamp")
        return self

    @classmethod
    def engaged(
        cls,
        reason: str | None = None,
        by_user_id: str | None = None,
        at: datetime | None = None,
    ) -> "TaskOverride":
        return cls(overridden=True, reason=reason, by_user_id=by_user_id, at=at or utc_now())

    @classmethod
    def cleared(cls) -> "TaskOverride":
        return cls()


class TaskTimeline(BaseModel):
    """Lifecycle timestamps and SLA marks."""

    started_at: datetime | None = None
    completed_at: datetime | None = None
    closed_at: datetime | None = None
    sla_warned_at: datetime | None = None
    sla_breached_at: datetime | None = None


class Task(BaseModel):
    """A unit of work bound to one template and one pipeline stage.

    Tasks are never deleted; closing moves them to a terminal status.
    ``version`` is bumped by the store on every write and backs the
    optimistic check used when an evaluation commits.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    org_id: str = Field(..., min_length=1, description="Organization scope")
    template_id: str = Field(..., min_length=1, description="Governing template")
    intake_id: str | None = Field(default=None, description="Originating intake request")
    title: str = Field(default="")

    pipeline_key: str | None = Field(default=None)
    stage_key: str | None = Field(default=None)

    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED)
    priority: int = Field(default=3, ge=1, le=5)
    override: TaskOverride = Field(default_factory=TaskOverride)

    data: dict[str, Any] = Field(default_factory=dict, description="Free-form payload")
    history: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict,
        description="Append-only traceability records keyed by kind",
    )
    timeline: TaskTimeline = Field(default_factory=TaskTimeline)

    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def overridden(self) -> bool:
        return self.override.overridden

    @property
    def completed_steps(self) -> frozenset[str]:
        return completed_step_ids(self.data)


def completed_step_ids(data: Mapping[str, Any]) -> frozenset[str]:
    """Step ids marked complete in a payload's step-completion record.

    The record lives under ``data["steps"]`` and maps step id to either a
    boolean or a status string ("completed"/"done").
    """
    record = data.get(STEPS_KEY)
    if not isinstance(record, Mapping):
        return frozenset()
    done = set()
    for step_id, value in record.items():
        if value is True:
            done.add(str(step_id))
        elif isinstance(value, str) and value.strip().lower() in COMPLETE_STEP_VALUES:
            done.add(str(step_id))
    return frozenset(done)
