"""Reprocess requests.

A reprocess request asks the agent to look at a task again. The request is
recorded in the task's history and published; the evaluation itself runs
when the runner consumes the event. Requests never bypass an override: an
overridden task accepts and records them, and their evaluations are
suppressed until the override is cleared.
"""

from dataclasses import dataclass
from uuid import UUID

from steward.directory.store import UserDirectory
from steward.errors import NotFoundError, ValidationError, dependency_boundary
from steward.events.bus import EventBus
from steward.events.models import EventType, OrchestrationEvent
from steward.observability.logging import get_logger
from steward.observability.metrics import REPROCESS_REQUESTS
from steward.tasks.models import Task, utc_now
from steward.tasks.store import TaskStore

logger = get_logger(__name__)

REPROCESS_HISTORY = "reprocess_requests"


@dataclass(frozen=True)
class ReprocessAck:
    """Acknowledgement of an accepted reprocess request."""

    task: Task
    event: OrchestrationEvent
    suppressed: bool
    message: str


class ReprocessCoordinator:
    """Accepts reprocess requests and hands them to the bus."""

    def __init__(
        self,
        task_store: TaskStore,
        users: UserDirectory,
        bus: EventBus,
    ) -> None:
        self._tasks = task_store
        self._users = users
        self._bus = bus

    async def request_reprocess(
        self,
        task_id: UUID,
        requested_by_user_id: str,
        reason: str | None = None,
        correlation_id: str | None = None,
    ) -> ReprocessAck:
        """Record a reprocess request and publish it.

        Every request is kept in ``history["reprocess_requests"]``; repeated
        requests are not merged.

        Args:
            task_id: Task to re-evaluate
            requested_by_user_id: Requesting user
            reason: Optional free text for the audit trail
            correlation_id: Reused when continuing an existing operation

        Returns:
            Acknowledgement with the task snapshot and published event

        Raises:
            NotFoundError: If the task or the requesting user does not exist
            ValidationError: If the requesting user is inactive
            DependencyError: If the store or the bus failed
        """
        with dependency_boundary("task lookup"):
            task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", entity="task", entity_id=task_id)

        with dependency_boundary("user lookup"):
            user = await self._users.get_user(requested_by_user_id)
        if user is None:
            raise NotFoundError(
                f"User {requested_by_user_id} not found",
                entity="user",
                entity_id=requested_by_user_id,
            )
        if not user.active:
            raise ValidationError(
                f"User {requested_by_user_id} is inactive", field="requestedByUserId"
            )

        event = OrchestrationEvent.for_task(
            EventType.REPROCESS_REQUESTED,
            task_id,
            org_id=task.org_id,
            correlation_id=correlation_id,
            requestedByUserId=requested_by_user_id,
            metadata={"reason": reason},
        )

        record = {
            "eventId": str(event.id),
            "requestedByUserId": requested_by_user_id,
            "reason": reason,
            "correlationId": event.correlation_id,
            "at": utc_now().isoformat(),
        }
        with dependency_boundary("task history append"):
            task = await self._tasks.append_history(task_id, REPROCESS_HISTORY, record)
        with dependency_boundary("event publish"):
            await self._bus.publish(event)

        suppressed = task.overridden
        REPROCESS_REQUESTS.labels(suppressed=str(suppressed).lower()).inc()
        logger.info(
            "reprocess_requested",
            task_id=str(task_id),
            requested_by=requested_by_user_id,
            suppressed=suppressed,
            total_requests=len(task.history.get(REPROCESS_HISTORY, [])),
            correlation_id=event.correlation_id,
        )

        if suppressed:
            message = "Reprocess accepted but suppressed due to override"
        else:
            message = "Reprocess accepted; evaluation scheduled"
        return ReprocessAck(task=task, event=event, suppressed=suppressed, message=message)
