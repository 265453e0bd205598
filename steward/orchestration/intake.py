"""Intake assignment and evaluation triggers.

Turns an intake request into a task and publishes the events that ask the
runner to evaluate tasks: assignment, data corrections and triggers from
external systems.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from steward.errors import NotFoundError, ValidationError, dependency_boundary
from steward.events.bus import EventBus
from steward.events.models import EventType, OrchestrationEvent
from steward.observability.logging import get_logger
from steward.tasks.models import Task
from steward.tasks.store import TaskStore

logger = get_logger(__name__)

ENVELOPE_KEYS = frozenset({"taskId", "correlationId", "source"})


class IntakeService:
    """Creates tasks from intake requests and publishes evaluation triggers."""

    def __init__(self, task_store: TaskStore, bus: EventBus) -> None:
        self._tasks = task_store
        self._bus = bus

    async def assign(
        self,
        org_id: str,
        template_id: str,
        *,
        intake_id: str | None = None,
        title: str = "",
        data: dict[str, Any] | None = None,
        pipeline_key: str | None = None,
        stage_key: str | None = None,
        priority: int | None = None,
        correlation_id: str | None = None,
    ) -> Task:
        """Create a task for an intake request and publish ``intake:assigned``.

        Pipeline, stage and priority default to the template's routing and
        SLA hints.

        Raises:
            NotFoundError: If the template does not exist
            DependencyError: If the store or the bus failed
        """
        with dependency_boundary("template lookup"):
            template = await self._tasks.get_template(template_id)
        if template is None:
            raise NotFoundError(
                f"Template {template_id} not found", entity="template", entity_id=template_id
            )

        task = Task(
            org_id=org_id,
            template_id=template.id,
            intake_id=intake_id,
            title=title or template.label,
            pipeline_key=pipeline_key or template.routing.preferred_pipeline_key,
            stage_key=stage_key or template.routing.default_stage_key,
            priority=priority or template.sla.default_priority,
            data=dict(data or {}),
        )
        with dependency_boundary("task create"):
            task = await self._tasks.create(task)

        event = OrchestrationEvent.for_task(
            EventType.INTAKE_ASSIGNED,
            task.id,
            org_id=org_id,
            correlation_id=correlation_id,
            templateId=template.id,
            intakeId=intake_id,
            pipelineKey=task.pipeline_key,
            stageKey=task.stage_key,
        )
        await self._publish(event)

        logger.info(
            "intake_assigned",
            task_id=str(task.id),
            template_id=template.id,
            pipeline_key=task.pipeline_key,
            stage_key=task.stage_key,
        )
        return task

    async def correct_data(
        self,
        task_id: UUID,
        *,
        data: dict[str, Any] | None = None,
        completed_steps: list[str] | None = None,
        blocker: str | None = None,
        unblock: bool = False,
        correlation_id: str | None = None,
    ) -> OrchestrationEvent:
        """Publish ``task:data_corrected`` carrying payload changes.

        Raises:
            ValidationError: If the event carries no change at all
            NotFoundError: If the task does not exist
        """
        if not (data or completed_steps or blocker or unblock):
            raise ValidationError("A data correction needs at least one change")
        task = await self._require_task(task_id)
        event = OrchestrationEvent.for_task(
            EventType.DATA_CORRECTED,
            task.id,
            org_id=task.org_id,
            correlation_id=correlation_id,
            data=dict(data or {}),
            completedSteps=list(completed_steps or []),
            blocker=blocker,
            unblock=unblock,
        )
        await self._publish(event)
        return event

    async def external_trigger(
        self,
        task_id: UUID,
        source: str,
        changes: Mapping[str, Any] | None = None,
        *,
        correlation_id: str | None = None,
    ) -> OrchestrationEvent:
        """Publish ``task:external_trigger`` on behalf of an external system.

        Args:
            task_id: Subject task
            source: Name of the external system
            changes: Optional change keys (data, completedSteps, blocker, unblock)
            correlation_id: Reused when continuing an existing operation

        Raises:
            ValidationError: If a change key collides with the event envelope
            NotFoundError: If the task does not exist
        """
        changes = dict(changes or {})
        clashing = sorted(changes.keys() & ENVELOPE_KEYS)
        if clashing:
            raise ValidationError(
                f"Change keys {clashing} are reserved for the event envelope", field="changes"
            )
        task = await self._require_task(task_id)
        event = OrchestrationEvent.for_task(
            EventType.EXTERNAL_TRIGGER,
            task.id,
            org_id=task.org_id,
            correlation_id=correlation_id,
            source=source,
        )
        event = event.model_copy(update={"payload": {**changes, **event.payload}})
        await self._publish(event)
        return event

    async def _require_task(self, task_id: UUID) -> Task:
        with dependency_boundary("task lookup"):
            task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", entity="task", entity_id=task_id)
        return task

    async def _publish(self, event: OrchestrationEvent) -> None:
        with dependency_boundary("event publish"):
            await self._bus.publish(event)
        logger.debug(
            "trigger_published",
            event_type=event.type.value,
            task_id=str(event.task_id),
            correlation_id=event.correlation_id,
        )
