"""Human override of autonomous task evaluation.

While a task is overridden the state machine short-circuits every
evaluation to a suppressed no-op. Setting and clearing the override are
single atomic store writes of the whole override record.
"""

from dataclasses import dataclass
from uuid import UUID

from steward.errors import dependency_boundary
from steward.events.bus import EventBus
from steward.events.models import EventType, OrchestrationEvent
from steward.observability.logging import get_logger
from steward.observability.metrics import OVERRIDES_SET
from steward.tasks.models import Task, TaskOverride
from steward.tasks.store import TaskStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class OverrideResult:
    """Outcome of a set/clear override call."""

    task: Task
    message: str
    event: OrchestrationEvent


class OverrideController:
    """Gates whether a task may advance autonomously."""

    def __init__(self, task_store: TaskStore, bus: EventBus) -> None:
        self._tasks = task_store
        self._bus = bus

    async def set_override(
        self,
        task_id: UUID,
        overridden: bool,
        reason: str | None = None,
        actor_id: str | None = None,
        correlation_id: str | None = None,
    ) -> OverrideResult:
        """Set or clear a task's override as one unit.

        Re-setting an override that is already active replaces its reason,
        actor and timestamp; ``task:override_set`` is published on every
        call, including idempotent ones.

        Args:
            task_id: Task to update
            overridden: True to pause the agent, False to resume it
            reason: Why the override was set (ignored when clearing)
            actor_id: User performing the change (ignored when clearing)
            correlation_id: Reused when continuing an existing operation

        Returns:
            Updated task snapshot, status message and the published event

        Raises:
            NotFoundError: If the task does not exist
            DependencyError: If the store or the bus failed
        """
        override = (
            TaskOverride.engaged(reason=reason, by_user_id=actor_id)
            if overridden
            else TaskOverride.cleared()
        )

        with dependency_boundary("task update"):
            task = await self._tasks.update(task_id, {"override": override})

        event = OrchestrationEvent.for_task(
            EventType.OVERRIDE_SET,
            task.id,
            org_id=task.org_id,
            correlation_id=correlation_id,
            overridden=override.overridden,
            reason=override.reason,
            byUserId=override.by_user_id,
            at=override.at.isoformat() if override.at else None,
        )
        with dependency_boundary("event publish"):
            await self._bus.publish(event)

        OVERRIDES_SET.labels(overridden=str(overridden).lower()).inc()
        logger.info(
            "override_set",
            task_id=str(task.id),
            overridden=overridden,
            actor_id=actor_id,
            correlation_id=event.correlation_id,
        )

        if overridden:
            message = "Override active: agent actions for this task are suppressed"
        else:
            message = "Override cleared: agent evaluation resumed"
        return OverrideResult(task=task, message=message, event=event)
