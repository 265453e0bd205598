"""Test factories for task domain models."""

from typing import Any
from uuid import UUID

from steward.events.models import EventType, OrchestrationEvent
from steward.tasks.models import (
    AUTONOMOUS_ACTIONS,
    ActionType,
    AgentConfig,
    CompletionCriteria,
    RequiredSteps,
    RoutingHints,
    SLAHints,
    Task,
    TaskOverride,
    TaskStatus,
    TaskStep,
    TaskTemplate,
)


class TemplateFactory:
    """Factory for creating TaskTemplate instances for testing."""

    @staticmethod
    def create(
        *,
        id: str = "BOOKING_REQUEST_V1",
        version: int = 1,
        step_ids: tuple[str, ...] = ("collect_details", "confirm_booking"),
        completion_criteria: CompletionCriteria | None = None,
        allowed_actions: frozenset[ActionType] = AUTONOMOUS_ACTIONS,
        typical_minutes: int | None = 60,
        pipeline_key: str | None = "bookings",
        stage_key: str | None = "new",
    ) -> TaskTemplate:
        """Create a template whose tasks complete once every step is done.

        Args:
            id: Template key
            version: Template version
            step_ids: Ordered step identifiers
            completion_criteria: Overrides the default required-steps criteria
            allowed_actions: Actions the agent may take
            typical_minutes: Expected duration for SLA checks
            pipeline_key: Default pipeline
            stage_key: Default stage
        """
        criteria = completion_criteria or RequiredSteps(step_ids=frozenset(step_ids))
        return TaskTemplate(
            id=id,
            version=version,
            label="Booking request",
            steps=tuple(
                TaskStep(id=step_id, label=step_id.replace("_", " "), order=i)
                for i, step_id in enumerate(step_ids)
            ),
            agent_config=AgentConfig(
                system_directive="Handle the booking end to end",
                allowed_actions=allowed_actions,
                completion_criteria=criteria,
            ),
            routing=RoutingHints(preferred_pipeline_key=pipeline_key, default_stage_key=stage_key),
            sla=SLAHints(typical_minutes=typical_minutes, default_priority=2),
        )


class TaskFactory:
    """Factory for creating Task instances for testing."""

    @staticmethod
    def create(
        *,
        template_id: str = "BOOKING_REQUEST_V1",
        org_id: str = "org-1",
        status: TaskStatus = TaskStatus.NOT_STARTED,
        data: dict[str, Any] | None = None,
        overridden: bool = False,
        override_reason: str | None = "Customer asked for a human",
        **kwargs: Any,
    ) -> Task:
        override = (
            TaskOverride.engaged(reason=override_reason, by_user_id="operator-1")
            if overridden
            else TaskOverride.cleared()
        )
        return Task(
            org_id=org_id,
            template_id=template_id,
            title="Book a table",
            status=status,
            data=data or {},
            override=override,
            **kwargs,
        )


class EventFactory:
    """Factory for creating trigger events for testing."""

    @staticmethod
    def create(
        task_id: UUID,
        event_type: EventType = EventType.DATA_CORRECTED,
        *,
        org_id: str = "org-1",
        correlation_id: str | None = None,
        **payload: Any,
    ) -> OrchestrationEvent:
        return OrchestrationEvent.for_task(
            event_type,
            task_id,
            org_id=org_id,
            correlation_id=correlation_id,
            **payload,
        )
