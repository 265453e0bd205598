"""Task template models.

A template is the behavioral contract for a category of tasks: its ordered
steps, how the agent may act on it, where its tasks are routed and how long
they usually take. Templates are immutable per version.
"""

import hashlib
import json
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from steward.tasks.models.enums import AUTONOMOUS_ACTIONS, ActionType, TaskStatus

COMPLETION_TARGETS = frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED})


class TaskStep(BaseModel):
    """One step of a template's workflow."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Step identifier")
    label: str = Field(default="", description="Display label")
    order: int = Field(default=0, ge=0, description="Position in the workflow")


class TargetStatus(BaseModel):
    """Completion criterion: the task reaches ``status``.

    Completion is only ever decided for an in-progress task, so the only
    targets are ``in_progress`` (complete on the next evaluation) and
    ``completed``, which is met once every template step is marked complete.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["target_status"] = "target_status"
    status: TaskStatus

    @field_validator("status")
    @classmethod
    def _check_reachable(cls, v: TaskStatus) -> TaskStatus:
        if v not in COMPLETION_TARGETS:
            raise ValueError(
                f"target status {v.value} can never be met; "
                f"use one of {sorted(s.value for s in COMPLETION_TARGETS)}"
            )
        return v


class RequiredSteps(BaseModel):
    """Completion criterion: every listed step is marked complete."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["required_steps"] = "required_steps"
    step_ids: frozenset[str] = Field(..., min_length=1)

    @field_serializer("step_ids")
    def _serialize_step_ids(self, step_ids: frozenset[str]) -> list[str]:
        return sorted(step_ids)


CompletionCriteria = Annotated[
    TargetStatus | RequiredSteps,
    Field(discriminator="kind"),
]


class AgentConfig(BaseModel):
    """How the agent behaves for tasks of this template."""

    model_config = ConfigDict(frozen=True)

    system_directive: str = Field(default="", description="Instruction for the agent")
    allowed_actions: frozenset[ActionType] = Field(
        default=AUTONOMOUS_ACTIONS,
        description="Actions the agent may take autonomously",
    )
    completion_criteria: CompletionCriteria | None = Field(
        default=None,
        description="None means tasks are only ever closed manually",
    )

    @field_serializer("allowed_actions")
    def _serialize_actions(self, actions: frozenset[ActionType]) -> list[str]:
        return sorted(action.value for action in actions)

    def config_hash(self) -> str:
        """Stable digest of this configuration for decision audit."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()[:16]


class RoutingHints(BaseModel):
    """Default pipeline placement for new tasks."""

    model_config = ConfigDict(frozen=True)

    preferred_pipeline_key: str | None = None
    default_stage_key: str | None = None


class SLAHints(BaseModel):
    """Expected duration and priority."""

    model_config = ConfigDict(frozen=True)

    typical_minutes: int | None = Field(default=None, gt=0)
    default_priority: int = Field(default=3, ge=1, le=5)


class TaskTemplate(BaseModel):
    """Versioned definition of how a category of task is executed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Template key, e.g. BOOKING_REQUEST_V1")
    version: int = Field(default=1, ge=1)
    label: str = Field(default="")
    category: str | None = Field(default=None)
    steps: tuple[TaskStep, ...] = Field(default=())
    agent_config: AgentConfig = Field(default_factory=AgentConfig)
    routing: RoutingHints = Field(default_factory=RoutingHints)
    sla: SLAHints = Field(default_factory=SLAHints)

    @model_validator(mode="after")
    def _check_steps(self) -> "TaskTemplate":
        ids = [step.id for step in self.steps]
        if len(ids) != len(set(ids)):
            raise ValueError("step ids must be unique")
        criteria = self.agent_config.completion_criteria
        if isinstance(criteria, RequiredSteps):
            unknown = criteria.step_ids - set(ids)
            if unknown:
                raise ValueError(f"required steps not defined by template: {sorted(unknown)}")
        elif isinstance(criteria, TargetStatus):
            if criteria.status == TaskStatus.COMPLETED and not ids:
                raise ValueError("target status completed requires template steps")
        return self

    @property
    def step_ids(self) -> frozenset[str]:
        return frozenset(step.id for step in self.steps)

    @property
    def ordered_steps(self) -> list[TaskStep]:
        return sorted(self.steps, key=lambda step: step.order)
