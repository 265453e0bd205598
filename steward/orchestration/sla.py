"""SLA monitoring.

Compares how long an open task has been worked on with its template's
typical duration. Crossing the warning or the breach threshold publishes
one event per task and threshold; the marks on the task timeline keep
later scans from repeating it.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from steward.config.models import SLAConfig
from steward.errors import StaleTaskVersionError, dependency_boundary
from steward.events.bus import EventBus
from steward.events.models import EventType, OrchestrationEvent
from steward.observability.logging import get_logger
from steward.observability.metrics import SLA_EVENTS
from steward.tasks.models import Task, TaskStatus, utc_now
from steward.tasks.store import TaskStore

logger = get_logger(__name__)

OPEN_STATUSES = (TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED)


class SLAState(str, Enum):
    """Where a task stands against its expected duration."""

    NOT_APPLICABLE = "not_applicable"  # Not started or no typical duration
    OK = "ok"
    WARNING = "warning"
    BREACHED = "breached"
    ALREADY_WARNED = "already_warned"
    ALREADY_BREACHED = "already_breached"


class SLACheck(BaseModel):
    """Result of checking one task."""

    state: SLAState
    expected_minutes: int | None = None
    actual_minutes: float = 0.0
    percentage_used: float = 0.0


def check_sla(
    task: Task,
    typical_minutes: int | None,
    now: datetime,
    warning_threshold: float = 0.8,
    breach_threshold: float = 1.0,
) -> SLACheck:
    """Check a task's elapsed time against its typical duration.

    Args:
        task: Task snapshot
        typical_minutes: Template's typical duration, None if unknown
        now: Reference time
        warning_threshold: Fraction of typical minutes that warns
        breach_threshold: Fraction of typical minutes that breaches

    Returns:
        The check; BREACHED/WARNING only when the mark is not yet set
    """
    started_at = task.timeline.started_at
    if started_at is None or not typical_minutes:
        return SLACheck(state=SLAState.NOT_APPLICABLE, expected_minutes=typical_minutes)

    actual = max((now - started_at).total_seconds() / 60, 0.0)
    used = actual / typical_minutes

    if used >= breach_threshold:
        state = SLAState.ALREADY_BREACHED if task.timeline.sla_breached_at else SLAState.BREACHED
    elif used >= warning_threshold:
        state = SLAState.ALREADY_WARNED if task.timeline.sla_warned_at else SLAState.WARNING
    else:
        state = SLAState.OK

    return SLACheck(
        state=state,
        expected_minutes=typical_minutes,
        actual_minutes=round(actual, 1),
        percentage_used=round(used * 100, 1),
    )


class SLAMonitor:
    """Periodically scans open tasks and publishes SLA events."""

    def __init__(
        self,
        task_store: TaskStore,
        bus: EventBus,
        config: SLAConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._tasks = task_store
        self._bus = bus
        self._config = config
        self._clock = clock
        self._running = False
        self._poll_task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the poll loop."""
        if self._running:
            logger.warning("sla_monitor_already_running")
            return

        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(
            "sla_monitor_started",
            poll_interval_seconds=self._config.poll_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the poll loop."""
        if not self._running:
            return

        self._running = False
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        logger.info("sla_monitor_stopped")

    async def scan(self) -> list[OrchestrationEvent]:
        """Check every open task once.

        Returns:
            The SLA events published during this scan
        """
        now = self._clock()
        with dependency_boundary("task listing"):
            tasks = await self._tasks.list_by_status(
                OPEN_STATUSES, limit=self._config.max_tasks_per_batch
            )

        published = []
        for task in tasks:
            with dependency_boundary("template lookup"):
                template = await self._tasks.get_template(task.template_id)
            if template is None:
                logger.warning("sla_template_missing", task_id=str(task.id))
                continue

            check = check_sla(
                task,
                template.sla.typical_minutes,
                now,
                self._config.warning_threshold,
                self._config.breach_threshold,
            )
            event = await self._emit(task, check, now)
            if event is not None:
                published.append(event)

        if published:
            logger.info("sla_scan_completed", scanned=len(tasks), events=len(published))
        return published

    async def _emit(self, task: Task, check: SLACheck, now: datetime) -> OrchestrationEvent | None:
        if check.state == SLAState.WARNING:
            event_type, mark = EventType.SLA_WARNING, "sla_warned_at"
        elif check.state == SLAState.BREACHED:
            event_type, mark = EventType.SLA_BREACHED, "sla_breached_at"
        else:
            return None

        timeline = task.timeline.model_copy(update={mark: now})
        try:
            with dependency_boundary("task update"):
                await self._tasks.update(
                    task.id, {"timeline": timeline}, expected_version=task.version
                )
        except StaleTaskVersionError:
            # Rechecked on the next scan
            logger.info("sla_mark_skipped_stale", task_id=str(task.id))
            return None

        event = OrchestrationEvent.for_task(
            event_type,
            task.id,
            org_id=task.org_id,
            expectedMinutes=check.expected_minutes,
            actualMinutes=check.actual_minutes,
            percentageUsed=check.percentage_used,
        )
        with dependency_boundary("event publish"):
            await self._bus.publish(event)

        SLA_EVENTS.labels(kind=check.state.value).inc()
        logger.warning(
            "sla_threshold_crossed",
            task_id=str(task.id),
            state=check.state.value,
            percentage_used=check.percentage_used,
        )
        return event

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.scan()
            except Exception as e:
                logger.error("sla_poll_error", error=str(e))

            await asyncio.sleep(self._config.poll_interval_seconds)
