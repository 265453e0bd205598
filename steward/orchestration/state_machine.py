"""Task lifecycle state machine.

NOT_STARTED -> IN_PROGRESS -> {BLOCKED <-> IN_PROGRESS} -> {COMPLETED | CLOSED}

``TaskStateMachine.evaluate`` is a pure function of the task snapshot, the
template snapshot and the triggering event. It never writes; the runner
commits the returned decision and records it in the decision log.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from steward.decisions.models import Decision, DecisionOutcome
from steward.errors import ConflictStateError
from steward.events.models import OrchestrationEvent
from steward.tasks.models import (
    STEPS_KEY,
    ActionType,
    CompletionCriteria,
    RequiredSteps,
    TargetStatus,
    Task,
    TaskStatus,
    TaskTemplate,
    completed_step_ids,
)

BLOCKER_KEY = "blocked_reason"

TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.NOT_STARTED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CLOSED}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.BLOCKED, TaskStatus.COMPLETED, TaskStatus.CLOSED}
    ),
    TaskStatus.BLOCKED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CLOSED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CLOSED: frozenset(),
}


def can_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Check whether the lifecycle allows moving between two statuses."""
    return to_status in TRANSITIONS[from_status]


def criteria_met(
    criteria: CompletionCriteria | None,
    status: TaskStatus,
    data: Mapping[str, Any],
    step_ids: frozenset[str] = frozenset(),
) -> bool:
    """Evaluate a template's completion criteria.

    A ``completed`` target is read as "every template step is done".

    Args:
        criteria: TargetStatus, RequiredSteps, or None
        status: Current task status
        data: Task payload holding the step-completion record
        step_ids: Steps defined by the template

    Returns:
        False when there are no criteria; such tasks only close manually
    """
    match criteria:
        case None:
            return False
        case TargetStatus(status=TaskStatus.COMPLETED):
            return bool(step_ids) and step_ids <= completed_step_ids(data)
        case TargetStatus(status=target):
            return status == target
        case RequiredSteps(step_ids=required):
            return required <= completed_step_ids(data)
    raise TypeError(f"Unknown completion criteria: {criteria!r}")


def apply_event_changes(
    data: Mapping[str, Any],
    payload: Mapping[str, Any],
) -> dict[str, Any]:
    """Fold an event's change keys into a copy of a task payload.

    Recognized keys: ``data`` (shallow merge), ``completedSteps`` (step ids
    marked completed in the step-completion record). Blocking keys are
    read separately by the state machine.
    """
    merged = dict(data)
    changes = payload.get("data")
    if isinstance(changes, Mapping):
        merged.update(changes)

    steps = payload.get("completedSteps") or []
    if steps:
        record = dict(merged.get(STEPS_KEY) or {})
        for step_id in steps:
            record[str(step_id)] = "completed"
        merged[STEPS_KEY] = record
    return merged


class TaskStateMachine:
    """Decides what the agent does with a task when an event arrives.

    Evaluation order:
    1. Override active: suppressed no-op
    2. Terminal status: rejected no-op
    3. Fold event changes into the payload
    4. Pick the lifecycle action for the current status
    5. Reject actions the template does not allow
    """

    def evaluate(
        self,
        task: Task,
        template: TaskTemplate,
        event: OrchestrationEvent,
    ) -> Decision:
        """Decide the action for one event.

        Args:
            task: Current task snapshot
            template: Template governing the task
            event: Triggering event

        Returns:
            The decision; ``changes`` is empty for every no-op
        """
        status = task.status

        if task.overridden:
            return self._noop(
                status,
                DecisionOutcome.SUPPRESSED,
                f"Override active ({task.override.reason or 'no reason given'}); "
                f"{event.type.value} ignored",
                overridden_by=task.override.by_user_id,
            )

        if task.is_terminal:
            error = ConflictStateError(f"Task is {status.value}; no further transitions")
            return self._noop(status, DecisionOutcome.REJECTED, error.message)

        payload = event.payload
        data = apply_event_changes(task.data, payload)
        blocker = payload.get("blocker")
        unblock = bool(payload.get("unblock"))
        at = event.timestamp
        criteria = template.agent_config.completion_criteria

        if status == TaskStatus.NOT_STARTED:
            decision = self._transition(
                task, ActionType.ADVANCE, TaskStatus.IN_PROGRESS, data, at,
                "Work started",
            )
        elif status == TaskStatus.IN_PROGRESS and blocker:
            data[BLOCKER_KEY] = str(blocker)
            decision = self._transition(
                task, ActionType.BLOCK, TaskStatus.BLOCKED, data, at,
                f"Blocked: {blocker}", blocker=str(blocker),
            )
        elif status == TaskStatus.BLOCKED and unblock:
            data.pop(BLOCKER_KEY, None)
            decision = self._transition(
                task, ActionType.ADVANCE, TaskStatus.IN_PROGRESS, data, at,
                "Blocker resolved",
            )
        elif status == TaskStatus.IN_PROGRESS and criteria_met(
            criteria, status, data, template.step_ids
        ):
            decision = self._transition(
                task, ActionType.ADVANCE, TaskStatus.COMPLETED, data, at,
                f"Completion criteria met ({criteria.kind})",
            )
        elif data != task.data:
            changed = sorted(
                key
                for key in data.keys() | task.data.keys()
                if data.get(key) != task.data.get(key)
            )
            decision = Decision(
                action=ActionType.UPDATE,
                outcome=DecisionOutcome.APPLIED,
                from_status=status,
                to_status=status,
                rationale=f"Payload updated: {', '.join(changed)}",
                changes={"data": data},
                metadata={"changed_keys": changed},
            )
        else:
            return self._noop(status, DecisionOutcome.NO_CHANGE, "Nothing to do for this event")

        allowed = template.agent_config.allowed_actions
        if decision.action not in allowed:
            return self._noop(
                status,
                DecisionOutcome.REJECTED,
                f"Action {decision.action.value} not allowed by template {template.id}",
                denied_action=decision.action.value,
                denied_to_status=decision.to_status.value,
            )
        return decision

    def close(self, task: Task, reason: str | None, at: datetime) -> Decision:
        """Decide a manual close.

        Raises:
            ConflictStateError: If the task is already terminal
        """
        if not can_transition(task.status, TaskStatus.CLOSED):
            raise ConflictStateError(f"Task {task.id} is already {task.status.value}")
        timeline = task.timeline.model_copy(update={"closed_at": at})
        return Decision(
            action=ActionType.CLOSE,
            outcome=DecisionOutcome.APPLIED,
            from_status=task.status,
            to_status=TaskStatus.CLOSED,
            rationale=f"Closed manually: {reason}" if reason else "Closed manually",
            changes={"status": TaskStatus.CLOSED, "timeline": timeline},
            metadata={"reason": reason},
        )

    def _transition(
        self,
        task: Task,
        action: ActionType,
        to_status: TaskStatus,
        data: dict[str, Any],
        at: datetime,
        rationale: str,
        **metadata: Any,
    ) -> Decision:
        if not can_transition(task.status, to_status):
            raise ConflictStateError(
                f"Invalid transition {task.status.value} -> {to_status.value}"
            )

        timeline = task.timeline
        if to_status == TaskStatus.IN_PROGRESS and timeline.started_at is None:
            timeline = timeline.model_copy(update={"started_at": at})
        elif to_status == TaskStatus.COMPLETED:
            timeline = timeline.model_copy(update={"completed_at": at})

        changes: dict[str, Any] = {"status": to_status}
        if data != task.data:
            changes["data"] = data
        if timeline is not task.timeline:
            changes["timeline"] = timeline

        return Decision(
            action=action,
            outcome=DecisionOutcome.APPLIED,
            from_status=task.status,
            to_status=to_status,
            rationale=rationale,
            changes=changes,
            metadata=metadata,
        )

    def _noop(
        self,
        status: TaskStatus,
        outcome: DecisionOutcome,
        rationale: str,
        **metadata: Any,
    ) -> Decision:
        return Decision(
            action=ActionType.NO_OP,
            outcome=outcome,
            from_status=status,
            to_status=status,
            rationale=rationale,
            metadata=metadata,
        )
