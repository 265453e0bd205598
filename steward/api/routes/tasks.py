"""Task endpoints: creation, triggers, decision log and the human control protocol."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from steward.api.dependencies import (
    DecisionLogDep,
    EvaluationRunnerDep,
    IntakeServiceDep,
    OverrideControllerDep,
    ReprocessCoordinatorDep,
    SettingsDep,
    TaskStoreDep,
)
from steward.api.exceptions import ResourceNotFoundError
from steward.api.models.tasks import (
    AssignTaskRequest,
    CloseRequest,
    DataCorrectionRequest,
    DecisionListResponse,
    DecisionView,
    ExternalTriggerRequest,
    OverrideRequest,
    ReprocessRequest,
    TaskActionResponse,
    TaskDetailResponse,
    TaskView,
)
from steward.errors import dependency_boundary
from steward.events.models import OrchestrationEvent
from steward.observability.logging import get_logger
from steward.tasks.models import Task
from steward.tasks.store import TaskStore

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks")


async def _require_task(task_store: TaskStore, task_id: UUID) -> Task:
    with dependency_boundary("task lookup"):
        task = await task_store.get(task_id)
    if task is None:
        raise ResourceNotFoundError(f"Task {task_id} not found")
    return task


def _trigger_response(task: Task, event: OrchestrationEvent, kind: str) -> TaskActionResponse:
    if task.overridden:
        message = f"{kind} accepted but suppressed due to override"
    else:
        message = f"{kind} accepted; evaluation scheduled"
    return TaskActionResponse(
        task=TaskView.from_task(task),
        message=message,
        suppressed=task.overridden,
        event_id=event.id,
        correlation_id=event.correlation_id,
    )


@router.post("", response_model=TaskActionResponse, status_code=status.HTTP_201_CREATED)
async def assign_task(
    request: AssignTaskRequest,
    intake: IntakeServiceDep,
) -> TaskActionResponse:
    """Create a task from an intake request and schedule its first evaluation."""
    task = await intake.assign(
        request.org_id,
        request.template_id,
        intake_id=request.intake_id,
        title=request.title,
        data=request.data,
        pipeline_key=request.pipeline_key,
        stage_key=request.stage_key,
        priority=request.priority,
        correlation_id=request.correlation_id,
    )
    return TaskActionResponse(
        task=TaskView.from_task(task),
        message=f"Task created from template {task.template_id}",
    )


@router.post(
    "/{task_id}/corrections",
    response_model=TaskActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def correct_data(
    task_id: UUID,
    request: DataCorrectionRequest,
    intake: IntakeServiceDep,
    task_store: TaskStoreDep,
) -> TaskActionResponse:
    """Publish a data correction for evaluation."""
    event = await intake.correct_data(
        task_id,
        data=request.data,
        completed_steps=request.completed_steps,
        blocker=request.blocker,
        unblock=request.unblock,
        correlation_id=request.correlation_id,
    )
    task = await _require_task(task_store, task_id)
    return _trigger_response(task, event, "Correction")


@router.post(
    "/{task_id}/triggers",
    response_model=TaskActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def external_trigger(
    task_id: UUID,
    request: ExternalTriggerRequest,
    intake: IntakeServiceDep,
    task_store: TaskStoreDep,
) -> TaskActionResponse:
    """Publish a trigger on behalf of an external system."""
    event = await intake.external_trigger(
        task_id,
        request.source,
        request.changes,
        correlation_id=request.correlation_id,
    )
    task = await _require_task(task_store, task_id)
    return _trigger_response(task, event, "Trigger")


@router.get("/{task_id}", response_model=TaskDetailResponse)
async def get_task(
    task_id: UUID,
    task_store: TaskStoreDep,
    decision_log: DecisionLogDep,
    settings: SettingsDep,
) -> TaskDetailResponse:
    """Get a task snapshot with its latest decisions, newest first."""
    task = await _require_task(task_store, task_id)
    with dependency_boundary("decision log lookup"):
        entries = await decision_log.list_for_task(
            task_id, limit=settings.api.decision_page_size, newest_first=True
        )
    return TaskDetailResponse(
        task=TaskView.from_task(task),
        decisions=[DecisionView.from_entry(e) for e in entries],
    )


@router.get("/{task_id}/decisions", response_model=DecisionListResponse)
async def list_decisions(
    task_id: UUID,
    task_store: TaskStoreDep,
    decision_log: DecisionLogDep,
    limit: int = Query(default=50, ge=1, le=500),
    newest_first: bool = Query(default=True, alias="newestFirst"),
) -> DecisionListResponse:
    """List a task's decision log."""
    await _require_task(task_store, task_id)
    with dependency_boundary("decision log lookup"):
        entries = await decision_log.list_for_task(
            task_id, limit=limit, newest_first=newest_first
        )
    return DecisionListResponse(
        items=[DecisionView.from_entry(e) for e in entries],
        total=len(entries),
    )


@router.post("/{task_id}/override", response_model=TaskActionResponse)
async def set_override(
    task_id: UUID,
    request: OverrideRequest,
    controller: OverrideControllerDep,
) -> TaskActionResponse:
    """Pause or resume autonomous evaluation of a task."""
    logger.info(
        "set_override_request",
        task_id=str(task_id),
        overridden=request.overridden,
        actor_id=request.actor_id,
    )
    result = await controller.set_override(
        task_id,
        request.overridden,
        reason=request.reason,
        actor_id=request.actor_id,
        correlation_id=request.correlation_id,
    )
    return TaskActionResponse(
        task=TaskView.from_task(result.task),
        message=result.message,
        suppressed=result.task.overridden,
        event_id=result.event.id,
        correlation_id=result.event.correlation_id,
    )


@router.post(
    "/{task_id}/reprocess",
    response_model=TaskActionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_reprocess(
    task_id: UUID,
    request: ReprocessRequest,
    coordinator: ReprocessCoordinatorDep,
) -> TaskActionResponse:
    """Ask the agent to evaluate a task again.

    Accepted even while the task is overridden; the evaluation is then
    suppressed until the override is cleared.
    """
    ack = await coordinator.request_reprocess(
        task_id,
        request.requested_by_user_id,
        reason=request.reason,
        correlation_id=request.correlation_id,
    )
    return TaskActionResponse(
        task=TaskView.from_task(ack.task),
        message=ack.message,
        suppressed=ack.suppressed,
        event_id=ack.event.id,
        correlation_id=ack.event.correlation_id,
    )


@router.post("/{task_id}/close", response_model=TaskActionResponse)
async def close_task(
    task_id: UUID,
    request: CloseRequest,
    runner: EvaluationRunnerDep,
) -> TaskActionResponse:
    """Close a non-terminal task manually."""
    task, entry = await runner.close_task(task_id, actor_id=request.actor_id, reason=request.reason)
    return TaskActionResponse(
        task=TaskView.from_task(task),
        message=f"Task closed from {entry.from_status.value}",
        suppressed=task.overridden,
        decision=DecisionView.from_entry(entry),
    )
