"""Unit tests for EvaluationRunner."""

import asyncio
from typing import Any
from uuid import UUID, uuid4

import pytest

from steward.config.models import OrchestrationConfig
from steward.decisions.models import DecisionOutcome
from steward.decisions.stores import InMemoryDecisionLogStore
from steward.errors import (
    ConflictStateError,
    EvaluationTimeoutError,
    NotFoundError,
    StaleTaskVersionError,
)
from steward.events.inmemory import InMemoryEventBus
from steward.events.models import EventType
from steward.orchestration import EvaluationRunner, InProcessTaskMutex
from steward.orchestration.runner import MANUAL_CLOSE_EVENT
from steward.tasks.models import ActionType, Task, TaskStatus, TaskTemplate
from steward.tasks.stores import InMemoryTaskStore
from tests.factories import EventFactory, TaskFactory


class SlowTemplateStore(InMemoryTaskStore):
    """Task store whose template lookups hang."""

    async def get_template(self, template_id: str) -> TaskTemplate | None:
        await asyncio.sleep(5)
        return await super().get_template(template_id)


class InterferingTaskStore(InMemoryTaskStore):
    """Task store that slips in a concurrent write before versioned updates."""

    def __init__(self, interferences: int = 1) -> None:
        super().__init__()
        self.interferences = interferences

    async def update(
        self,
        task_id: UUID,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Task:
        if expected_version is not None and self.interferences > 0:
            self.interferences -= 1
            await super().update(task_id, {"title": "edited elsewhere"})
        return await super().update(task_id, changes, expected_version=expected_version)


def make_runner(
    task_store: InMemoryTaskStore,
    decision_log: InMemoryDecisionLogStore,
    bus: InMemoryEventBus,
    **config: Any,
) -> EvaluationRunner:
    return EvaluationRunner(
        task_store,
        decision_log,
        bus,
        InProcessTaskMutex(blocking_timeout=0.1),
        OrchestrationConfig(**config),
    )


class TestHandleEvent:
    @pytest.mark.asyncio
    async def test_applies_and_logs_decision(
        self,
        task_store: InMemoryTaskStore,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create())
        event = EventFactory.create(task.id, EventType.INTAKE_ASSIGNED, correlation_id="c-1")

        entry = await runner.handle_event(event)

        stored = await task_store.get(task.id)
        assert stored.status == TaskStatus.IN_PROGRESS
        assert entry.action == ActionType.ADVANCE
        assert entry.outcome == DecisionOutcome.APPLIED
        assert entry.event_id == event.id
        assert entry.correlation_id == "c-1"
        assert entry.template_version == template.version
        assert entry.agent_config_hash == template.agent_config.config_hash()
        assert entry.input_snapshot["status"] == "not_started"
        assert entry.input_snapshot["version"] == task.version
        assert await decision_log.list_for_task(task.id) == [entry]

        [evaluated] = bus.history(event_type=EventType.EVALUATED)
        assert evaluated.payload["decisionId"] == str(entry.id)
        assert evaluated.payload["toStatus"] == "in_progress"
        assert evaluated.correlation_id == "c-1"

    @pytest.mark.asyncio
    async def test_ignores_non_trigger_events(
        self, task_store: InMemoryTaskStore, runner: EvaluationRunner
    ) -> None:
        task = await task_store.create(TaskFactory.create())
        assert await runner.handle_event(
            EventFactory.create(task.id, EventType.OVERRIDE_SET)
        ) is None

    @pytest.mark.asyncio
    async def test_overridden_task_logs_suppressed_noop(
        self,
        task_store: InMemoryTaskStore,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(
            TaskFactory.create(status=TaskStatus.IN_PROGRESS, overridden=True)
        )

        entry = await runner.handle_event(
            EventFactory.create(task.id, completedSteps=["collect_details", "confirm_booking"])
        )

        assert entry.suppressed
        assert entry.action == ActionType.NO_OP
        stored = await task_store.get(task.id)
        assert stored.status == TaskStatus.IN_PROGRESS
        assert stored.version == task.version

    @pytest.mark.asyncio
    async def test_redelivery_is_not_applied_twice(
        self,
        task_store: InMemoryTaskStore,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create(status=TaskStatus.IN_PROGRESS))
        event = EventFactory.create(task.id, data={"guests": 4})

        await runner.handle_event(event)
        after_first = await task_store.get(task.id)
        duplicate = await runner.handle_event(event)

        assert duplicate.outcome == DecisionOutcome.NO_CHANGE
        assert duplicate.metadata["redelivery"] is True
        assert (await task_store.get(task.id)).version == after_first.version
        assert len(await decision_log.list_for_task(task.id)) == 2
        assert len(bus.history(event_type=EventType.EVALUATED)) == 1

    @pytest.mark.asyncio
    async def test_suppressed_event_is_evaluated_again_after_clear(
        self,
        task_store: InMemoryTaskStore,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create(overridden=True))
        event = EventFactory.create(task.id, EventType.REPROCESS_REQUESTED)

        first = await runner.handle_event(event)
        await task_store.update(task.id, {"override": task.override.cleared()})
        second = await runner.handle_event(event)

        assert first.suppressed
        assert second.outcome == DecisionOutcome.APPLIED
        assert (await task_store.get(task.id)).status == TaskStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_same_task_evaluations_are_serialized(
        self,
        task_store: InMemoryTaskStore,
        decision_log: InMemoryDecisionLogStore,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create(status=TaskStatus.IN_PROGRESS))
        events = [EventFactory.create(task.id, data={f"k{i}": i}) for i in range(5)]

        await asyncio.gather(*(runner.handle_event(e) for e in events))

        stored = await task_store.get(task.id)
        assert stored.data == {f"k{i}": i for i in range(5)}
        assert stored.version == task.version + 5
        versions = [e.input_snapshot["version"] for e in await decision_log.list_for_task(task.id)]
        assert sorted(versions) == list(range(task.version, task.version + 5))

    @pytest.mark.asyncio
    async def test_missing_task_publishes_failure(
        self, bus: InMemoryEventBus, runner: EvaluationRunner
    ) -> None:
        event = EventFactory.create(uuid4())

        with pytest.raises(NotFoundError):
            await runner.handle_event(event)

        [failure] = bus.history(event_type=EventType.EVALUATION_FAILED)
        assert failure.payload["errorType"] == "NotFoundError"
        assert failure.payload["eventId"] == str(event.id)


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_evaluation_times_out_and_releases_lock(
        self,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
    ) -> None:
        store = SlowTemplateStore()
        runner = make_runner(store, decision_log, bus, evaluation_timeout_seconds=0.05)
        task = await store.create(TaskFactory.create())

        with pytest.raises(EvaluationTimeoutError) as exc_info:
            await runner.handle_event(EventFactory.create(task.id))

        assert exc_info.value.timeout_seconds == 0.05
        [entry] = await decision_log.list_for_task(task.id)
        assert entry.outcome == DecisionOutcome.TIMED_OUT
        assert (await store.get(task.id)).status == TaskStatus.NOT_STARTED
        assert not await runner._mutex.is_locked(task.id)
        assert len(bus.history(event_type=EventType.EVALUATION_FAILED)) == 1

    @pytest.mark.asyncio
    async def test_lock_wait_times_out(
        self,
        task_store: InMemoryTaskStore,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
    ) -> None:
        runner = make_runner(task_store, decision_log, bus)
        task = await task_store.create(TaskFactory.create())

        async with runner._mutex.acquire(task.id):
            with pytest.raises(EvaluationTimeoutError):
                await runner.handle_event(EventFactory.create(task.id))

        assert await decision_log.list_for_task(task.id) == []


class TestStaleCommits:
    @pytest.mark.asyncio
    async def test_stale_commit_is_reevaluated(
        self,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
    ) -> None:
        from tests.factories import TemplateFactory

        store = InterferingTaskStore(interferences=1)
        await store.save_template(TemplateFactory.create())
        runner = make_runner(store, decision_log, bus)
        task = await store.create(TaskFactory.create())

        entry = await runner.handle_event(EventFactory.create(task.id))

        stored = await store.get(task.id)
        assert stored.status == TaskStatus.IN_PROGRESS
        assert stored.title == "edited elsewhere"
        assert entry.input_snapshot["version"] == task.version + 1
        assert len(await decision_log.list_for_task(task.id)) == 1

    @pytest.mark.asyncio
    async def test_stale_commit_gives_up_after_max_attempts(
        self,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
    ) -> None:
        from tests.factories import TemplateFactory

        store = InterferingTaskStore(interferences=5)
        await store.save_template(TemplateFactory.create())
        runner = make_runner(store, decision_log, bus, max_commit_attempts=2)
        task = await store.create(TaskFactory.create())

        with pytest.raises(StaleTaskVersionError):
            await runner.handle_event(EventFactory.create(task.id))

        assert await decision_log.list_for_task(task.id) == []
        assert (await store.get(task.id)).status == TaskStatus.NOT_STARTED


class TestCloseTask:
    @pytest.mark.asyncio
    async def test_close_open_task(
        self,
        task_store: InMemoryTaskStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create(status=TaskStatus.IN_PROGRESS))

        closed, entry = await runner.close_task(task.id, actor_id="operator-1", reason="dup")

        assert closed.status == TaskStatus.CLOSED
        assert closed.timeline.closed_at is not None
        assert entry.action == ActionType.CLOSE
        assert entry.event_type == MANUAL_CLOSE_EVENT
        assert entry.metadata["closed_by"] == "operator-1"
        assert len(bus.history(event_type=EventType.EVALUATED)) == 1

    @pytest.mark.asyncio
    async def test_close_terminal_task_conflicts(
        self,
        task_store: InMemoryTaskStore,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create(status=TaskStatus.COMPLETED))
        with pytest.raises(ConflictStateError):
            await runner.close_task(task.id)

    @pytest.mark.asyncio
    async def test_close_missing_task(self, runner: EvaluationRunner) -> None:
        with pytest.raises(NotFoundError):
            await runner.close_task(uuid4())


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_consumes_trigger_events_from_bus(
        self,
        task_store: InMemoryTaskStore,
        decision_log: InMemoryDecisionLogStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
        runner: EvaluationRunner,
    ) -> None:
        task = await task_store.create(TaskFactory.create())
        await runner.subscribe()
        await bus.start()

        await bus.publish(EventFactory.create(task.id, EventType.EXTERNAL_TRIGGER))
        await bus.join()

        assert (await task_store.get(task.id)).status == TaskStatus.IN_PROGRESS
        assert len(await decision_log.list_for_task(task.id)) == 1
