"""Decision and decision log models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from steward.tasks.models import ActionType, TaskStatus


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class DecisionOutcome(str, Enum):
    """What became of a decided action."""

    APPLIED = "applied"  # State changed
    NO_CHANGE = "no_change"  # Nothing to do for this event
    SUPPRESSED = "suppressed"  # Override active
    REJECTED = "rejected"  # Terminal task or action not allowed
    TIMED_OUT = "timed_out"  # Evaluation exceeded its bound


class Decision(BaseModel):
    """Result of evaluating one event against one task snapshot.

    ``changes`` holds the task fields to write when the decision is
    committed; it is empty for every no-op.
    """

    model_config = ConfigDict(frozen=True)

    action: ActionType
    outcome: DecisionOutcome
    from_status: TaskStatus
    to_status: TaskStatus
    rationale: str = Field(default="")
    changes: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return self.action == ActionType.NO_OP

    @property
    def changes_state(self) -> bool:
        return bool(self.changes)


class DecisionLogEntry(BaseModel):
    """Immutable audit record of one evaluation.

    Written for every evaluation, no-ops included, so the log shows what
    the agent saw and did for each event. Entries are never updated or
    deleted.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    task_id: UUID = Field(..., description="Evaluated task")
    org_id: str = Field(..., description="Organization scope")
    template_id: str = Field(..., description="Governing template")
    template_version: int | None = Field(default=None, description="Template version in force")
    agent_config_hash: str | None = Field(default=None, description="Digest of the agent config")

    event_id: UUID | None = Field(default=None, description="Triggering event")
    event_type: str = Field(..., description="Triggering event type")
    correlation_id: str | None = Field(default=None)

    action: ActionType
    outcome: DecisionOutcome
    from_status: TaskStatus
    to_status: TaskStatus
    rationale: str = Field(default="")
    input_snapshot: dict[str, Any] = Field(
        default_factory=dict, description="Task state the decision was made on"
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now, description="Decision time")

    @property
    def suppressed(self) -> bool:
        return self.outcome == DecisionOutcome.SUPPRESSED

    @property
    def is_noop(self) -> bool:
        return self.action == ActionType.NO_OP
