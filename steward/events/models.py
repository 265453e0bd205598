"""Typed orchestration events.

Every event carries a ``type`` from :class:`EventType` and a payload whose
keys follow the published contract (camelCase, ``taskId`` and
``correlationId`` always present for task events).
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class EventType(str, Enum):
    """Event names published on the bus."""

    # Human control protocol
    OVERRIDE_SET = "task:override_set"
    REPROCESS_REQUESTED = "task:reprocess_requested"

    # Evaluation triggers
    INTAKE_ASSIGNED = "intake:assigned"
    DATA_CORRECTED = "task:data_corrected"
    EXTERNAL_TRIGGER = "task:external_trigger"

    # Evaluation results
    EVALUATED = "task:evaluated"
    EVALUATION_FAILED = "task:evaluation_failed"

    # SLA
    SLA_WARNING = "task:sla_warning"
    SLA_BREACHED = "task:sla_breached"


TRIGGER_EVENTS: frozenset[EventType] = frozenset(
    {
        EventType.REPROCESS_REQUESTED,
        EventType.INTAKE_ASSIGNED,
        EventType.DATA_CORRECTED,
        EventType.EXTERNAL_TRIGGER,
    }
)


class OrchestrationEvent(BaseModel):
    """An event on the orchestration bus.

    Redeliveries and replays reuse the same ``id``, which is what consumers
    deduplicate on.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique event identifier")
    type: EventType = Field(..., description="Event name")
    task_id: UUID | None = Field(default=None, description="Subject task")
    org_id: str | None = Field(default=None, description="Organization scope")
    correlation_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Ties together the events of one logical operation",
    )
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_task(
        cls,
        event_type: EventType,
        task_id: UUID,
        *,
        org_id: str | None = None,
        correlation_id: str | None = None,
        **payload: Any,
    ) -> "OrchestrationEvent":
        """Build a task event with ``taskId`` and ``correlationId`` in the payload.

        Args:
            event_type: Event name
            task_id: Subject task
            org_id: Organization scope
            correlation_id: Reused when continuing an existing operation
            **payload: Remaining contract keys

        Returns:
            The event
        """
        correlation_id = correlation_id or str(uuid4())
        body = {"taskId": str(task_id), **payload, "correlationId": correlation_id}
        return cls(
            type=event_type,
            task_id=task_id,
            org_id=org_id,
            correlation_id=correlation_id,
            payload=body,
        )

    @property
    def is_trigger(self) -> bool:
        """Whether this event asks for a task evaluation."""
        return self.type in TRIGGER_EVENTS
