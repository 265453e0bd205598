"""Unit tests for SLA checks and the SLA monitor."""

from datetime import UTC, datetime, timedelta

import pytest

from steward.config.models import SLAConfig
from steward.events.inmemory import InMemoryEventBus
from steward.events.models import EventType
from steward.orchestration.sla import SLAMonitor, SLAState, check_sla
from steward.tasks.models import TaskStatus, TaskTemplate
from steward.tasks.models.task import TaskTimeline
from steward.tasks.stores import InMemoryTaskStore
from tests.factories import TaskFactory

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def started(minutes_ago: float, **marks: datetime) -> TaskTimeline:
    return TaskTimeline(started_at=NOW - timedelta(minutes=minutes_ago), **marks)


class TestCheckSla:
    @pytest.mark.parametrize(
        ("minutes_ago", "state"),
        [(30, SLAState.OK), (50, SLAState.WARNING), (60, SLAState.BREACHED), (90, SLAState.BREACHED)],
    )
    def test_thresholds(self, minutes_ago: float, state: SLAState) -> None:
        task = TaskFactory.create(status=TaskStatus.IN_PROGRESS, timeline=started(minutes_ago))
        check = check_sla(task, 60, NOW)
        assert check.state == state

    def test_percentage(self) -> None:
        task = TaskFactory.create(status=TaskStatus.IN_PROGRESS, timeline=started(45))
        check = check_sla(task, 60, NOW)
        assert check.actual_minutes == 45.0
        assert check.percentage_used == 75.0

    def test_not_started_or_no_typical_duration(self) -> None:
        assert check_sla(TaskFactory.create(), 60, NOW).state == SLAState.NOT_APPLICABLE
        task = TaskFactory.create(timeline=started(500))
        assert check_sla(task, None, NOW).state == SLAState.NOT_APPLICABLE

    def test_marks_prevent_repeats(self) -> None:
        warned = TaskFactory.create(timeline=started(50, sla_warned_at=NOW))
        breached = TaskFactory.create(timeline=started(70, sla_breached_at=NOW))
        assert check_sla(warned, 60, NOW).state == SLAState.ALREADY_WARNED
        assert check_sla(breached, 60, NOW).state == SLAState.ALREADY_BREACHED


class TestSLAMonitor:
    @pytest.mark.asyncio
    async def test_scan_emits_once_per_threshold(
        self,
        task_store: InMemoryTaskStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
    ) -> None:
        task = await task_store.create(
            TaskFactory.create(status=TaskStatus.IN_PROGRESS, timeline=started(50))
        )
        monitor = SLAMonitor(task_store, bus, SLAConfig(), clock=lambda: NOW)

        first = await monitor.scan()
        second = await monitor.scan()

        assert [e.type for e in first] == [EventType.SLA_WARNING]
        assert second == []
        assert first[0].payload["expectedMinutes"] == 60
        assert first[0].payload["taskId"] == str(task.id)
        assert (await task_store.get(task.id)).timeline.sla_warned_at == NOW

    @pytest.mark.asyncio
    async def test_breach_after_warning(
        self,
        task_store: InMemoryTaskStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
    ) -> None:
        await task_store.create(
            TaskFactory.create(
                status=TaskStatus.BLOCKED, timeline=started(65, sla_warned_at=NOW)
            )
        )
        monitor = SLAMonitor(task_store, bus, SLAConfig(), clock=lambda: NOW)

        events = await monitor.scan()

        assert [e.type for e in events] == [EventType.SLA_BREACHED]

    @pytest.mark.asyncio
    async def test_terminal_tasks_ignored(
        self,
        task_store: InMemoryTaskStore,
        bus: InMemoryEventBus,
        template: TaskTemplate,
    ) -> None:
        await task_store.create(
            TaskFactory.create(status=TaskStatus.COMPLETED, timeline=started(500))
        )
        monitor = SLAMonitor(task_store, bus, SLAConfig(), clock=lambda: NOW)

        assert await monitor.scan() == []

    @pytest.mark.asyncio
    async def test_start_and_stop(
        self, task_store: InMemoryTaskStore, bus: InMemoryEventBus
    ) -> None:
        monitor = SLAMonitor(task_store, bus, SLAConfig(poll_interval_seconds=1))
        await monitor.start()
        await monitor.start()
        await monitor.stop()
        await monitor.stop()
