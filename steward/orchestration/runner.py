"""Evaluation runner.

Consumes trigger events from the bus and drives one task evaluation per
event: take the task lock, decide within the time bound, commit the
decision with an optimistic version check, append the decision log entry
and publish the result event.
"""

import asyncio
import time
from uuid import UUID

from steward.config.models import OrchestrationConfig
from steward.decisions.models import Decision, DecisionLogEntry, DecisionOutcome
from steward.decisions.store import DecisionLogStore
from steward.errors import (
    ConflictStateError,
    EvaluationTimeoutError,
    NotFoundError,
    StaleTaskVersionError,
    StewardError,
    dependency_boundary,
)
from steward.events.bus import EventBus
from steward.events.models import TRIGGER_EVENTS, EventType, OrchestrationEvent
from steward.observability.logging import get_logger
from steward.observability.metrics import (
    EVALUATION_LATENCY,
    EVALUATION_TIMEOUTS,
    EVALUATIONS,
)
from steward.orchestration.mutex import TaskMutex
from steward.orchestration.state_machine import TaskStateMachine
from steward.tasks.models import ActionType, Task, TaskTemplate, utc_now
from steward.tasks.store import TaskStore

logger = get_logger(__name__)

MANUAL_CLOSE_EVENT = "manual:close"

# Outcomes that leave an event unprocessed; a redelivery evaluates it again
RETRYABLE_OUTCOMES = frozenset({DecisionOutcome.SUPPRESSED, DecisionOutcome.TIMED_OUT})


class EvaluationRunner:
    """Serializes and commits task evaluations.

    At most one evaluation runs per task at a time; different tasks run
    fully in parallel. Only the decide phase is bounded by the evaluation
    timeout, so a commit is never abandoned half-way.
    """

    def __init__(
        self,
        task_store: TaskStore,
        decision_log: DecisionLogStore,
        bus: EventBus,
        mutex: TaskMutex,
        config: OrchestrationConfig,
        state_machine: TaskStateMachine | None = None,
    ) -> None:
        self._tasks = task_store
        self._log = decision_log
        self._bus = bus
        self._mutex = mutex
        self._config = config
        self._state_machine = state_machine or TaskStateMachine()

    async def subscribe(self) -> None:
        """Register the runner for every evaluation trigger event."""
        for event_type in sorted(TRIGGER_EVENTS, key=lambda t: t.value):
            await self._bus.subscribe(event_type.value, self.handle_event)
        logger.info("evaluation_runner_subscribed", events=len(TRIGGER_EVENTS))

    async def handle_event(self, event: OrchestrationEvent) -> DecisionLogEntry | None:
        """Evaluate the event's task.

        Args:
            event: Trigger event

        Returns:
            The decision log entry written, or None for non-trigger events

        Raises:
            NotFoundError: If the task or its template does not exist
            EvaluationTimeoutError: If the lock or the decide phase timed out
            DependencyError: If a store or the bus failed
        """
        if not event.is_trigger or event.task_id is None:
            return None

        task_id = event.task_id
        async with self._mutex.acquire(task_id) as acquired:
            if not acquired:
                raise EvaluationTimeoutError(
                    f"Task {task_id} is locked by another evaluation",
                    timeout_seconds=self._config.lock.blocking_timeout_seconds,
                )
            try:
                return await self._evaluate_locked(task_id, event)
            except StewardError as e:
                await self._publish_failure(task_id, event, e)
                raise

    async def close_task(
        self,
        task_id: UUID,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> tuple[Task, DecisionLogEntry]:
        """Close a task manually.

        Raises:
            NotFoundError: If the task does not exist
            ConflictStateError: If the task is already terminal
        """
        async with self._mutex.acquire(task_id) as acquired:
            if not acquired:
                raise EvaluationTimeoutError(
                    f"Task {task_id} is locked by another evaluation",
                    timeout_seconds=self._config.lock.blocking_timeout_seconds,
                )
            snapshot = await self._load_task(task_id)
            decision = self._state_machine.close(snapshot, reason, utc_now())
            with dependency_boundary("task update"):
                task = await self._tasks.update(task_id, decision.changes)
            entry = await self._record(
                task,
                None,
                decision,
                snapshot=snapshot,
                event_id=None,
                event_type=MANUAL_CLOSE_EVENT,
                correlation_id=None,
                metadata={"closed_by": actor_id},
            )
            await self._publish_result(task, entry, correlation_id=None)

        logger.info("task_closed", task_id=str(task_id), actor_id=actor_id)
        return task, entry

    async def _evaluate_locked(
        self, task_id: UUID, event: OrchestrationEvent
    ) -> DecisionLogEntry:
        attempts = self._config.max_commit_attempts
        for attempt in range(1, attempts + 1):
            task = await self._load_task(task_id)

            if await self._already_processed(task_id, event.id):
                decision = Decision(
                    action=ActionType.NO_OP,
                    outcome=DecisionOutcome.NO_CHANGE,
                    from_status=task.status,
                    to_status=task.status,
                    rationale=f"Event {event.id} already processed; redelivery ignored",
                    metadata={"redelivery": True},
                )
                logger.info(
                    "evaluation_redelivery_ignored",
                    task_id=str(task_id),
                    event_id=str(event.id),
                )
                return await self._record(task, None, decision, **self._event_fields(event))

            template, decision = await self._decide_with_timeout(task, event)

            snapshot = task
            if decision.changes:
                try:
                    with dependency_boundary("task update"):
                        task = await self._tasks.update(
                            task_id, decision.changes, expected_version=task.version
                        )
                except StaleTaskVersionError as e:
                    logger.warning(
                        "evaluation_stale_commit",
                        task_id=str(task_id),
                        attempt=attempt,
                        expected_version=e.expected_version,
                        actual_version=e.actual_version,
                    )
                    if attempt >= attempts:
                        raise
                    continue

            entry = await self._record(
                task, template, decision, snapshot=snapshot, **self._event_fields(event)
            )
            await self._publish_result(task, entry, correlation_id=event.correlation_id)
            logger.info(
                "task_evaluated",
                task_id=str(task_id),
                event_type=event.type.value,
                action=decision.action.value,
                outcome=decision.outcome.value,
                from_status=decision.from_status.value,
                to_status=decision.to_status.value,
            )
            return entry

        raise ConflictStateError(f"Task {task_id} could not be committed")

    async def _decide_with_timeout(
        self, task: Task, event: OrchestrationEvent
    ) -> tuple[TaskTemplate, Decision]:
        timeout = self._config.evaluation_timeout_seconds
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(self._decide(task, event), timeout=timeout)
        except TimeoutError:
            EVALUATION_TIMEOUTS.inc()
            decision = Decision(
                action=ActionType.NO_OP,
                outcome=DecisionOutcome.TIMED_OUT,
                from_status=task.status,
                to_status=task.status,
                rationale=f"Evaluation exceeded {timeout}s",
            )
            await self._record(task, None, decision, **self._event_fields(event))
            logger.error(
                "evaluation_timed_out",
                task_id=str(task.id),
                event_id=str(event.id),
                timeout_seconds=timeout,
            )
            raise EvaluationTimeoutError(
                f"Evaluation of task {task.id} exceeded {timeout}s",
                timeout_seconds=timeout,
            ) from None
        finally:
            EVALUATION_LATENCY.observe(time.perf_counter() - started)

    async def _decide(
        self, task: Task, event: OrchestrationEvent
    ) -> tuple[TaskTemplate, Decision]:
        template = await self._load_template(task.template_id)
        return template, self._state_machine.evaluate(task, template, event)

    async def _already_processed(self, task_id: UUID, event_id: UUID) -> bool:
        with dependency_boundary("decision log lookup"):
            entries = await self._log.find_by_event(task_id, event_id)
        return any(entry.outcome not in RETRYABLE_OUTCOMES for entry in entries)

    async def _load_task(self, task_id: UUID) -> Task:
        with dependency_boundary("task lookup"):
            task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", entity="task", entity_id=task_id)
        return task

    async def _load_template(self, template_id: str) -> TaskTemplate:
        with dependency_boundary("template lookup"):
            template = await self._tasks.get_template(template_id)
        if template is None:
            raise NotFoundError(
                f"Template {template_id} not found", entity="template", entity_id=template_id
            )
        return template

    async def _record(
        self,
        task: Task,
        template: TaskTemplate | None,
        decision: Decision,
        *,
        snapshot: Task | None = None,
        event_id: UUID | None,
        event_type: str,
        correlation_id: str | None,
        metadata: dict | None = None,
    ) -> DecisionLogEntry:
        seen = snapshot or task
        entry = DecisionLogEntry(
            task_id=task.id,
            org_id=task.org_id,
            template_id=task.template_id,
            template_version=template.version if template else None,
            agent_config_hash=template.agent_config.config_hash() if template else None,
            event_id=event_id,
            event_type=event_type,
            correlation_id=correlation_id,
            action=decision.action,
            outcome=decision.outcome,
            from_status=decision.from_status,
            to_status=decision.to_status,
            rationale=decision.rationale,
            input_snapshot={
                "status": decision.from_status.value,
                "version": seen.version,
                "overridden": seen.overridden,
                "data": seen.data,
            },
            metadata={**decision.metadata, **(metadata or {})},
        )
        with dependency_boundary("decision log append"):
            await self._log.append(entry)
        EVALUATIONS.labels(action=entry.action.value, outcome=entry.outcome.value).inc()
        return entry

    async def _publish_result(
        self, task: Task, entry: DecisionLogEntry, correlation_id: str | None
    ) -> None:
        event = OrchestrationEvent.for_task(
            EventType.EVALUATED,
            task.id,
            org_id=task.org_id,
            correlation_id=correlation_id,
            decisionId=str(entry.id),
            action=entry.action.value,
            outcome=entry.outcome.value,
            fromStatus=entry.from_status.value,
            toStatus=entry.to_status.value,
        )
        with dependency_boundary("event publish"):
            await self._bus.publish(event)

    async def _publish_failure(
        self, task_id: UUID, event: OrchestrationEvent, error: StewardError
    ) -> None:
        failure = OrchestrationEvent.for_task(
            EventType.EVALUATION_FAILED,
            task_id,
            org_id=event.org_id,
            correlation_id=event.correlation_id,
            error=error.message,
            errorType=type(error).__name__,
            eventId=str(event.id),
        )
        try:
            await self._bus.publish(failure)
        except Exception as e:
            logger.error("evaluation_failure_publish_failed", task_id=str(task_id), error=str(e))

    @staticmethod
    def _event_fields(event: OrchestrationEvent) -> dict:
        return {
            "event_id": event.id,
            "event_type": event.type.value,
            "correlation_id": event.correlation_id,
        }
