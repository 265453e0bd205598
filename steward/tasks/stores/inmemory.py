"""In-memory implementation of TaskStore."""

import asyncio
from collections.abc import Iterable
from typing import Any
from uuid import UUID

import pydantic

from steward.errors import NotFoundError, StaleTaskVersionError, ValidationError
from steward.tasks.models import Task, TaskStatus, TaskTemplate, utc_now
from steward.tasks.store import TaskStore

# Fields owned by the store itself
PROTECTED_FIELDS = frozenset({"id", "org_id", "version", "created_at", "updated_at"})


class InMemoryTaskStore(TaskStore):
    """In-memory implementation of TaskStore for testing and development.

    Uses simple dict storage with linear scan for queries.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._tasks: dict[UUID, Task] = {}
        self._templates: dict[str, TaskTemplate] = {}
        self._lock = asyncio.Lock()

    async def get(self, task_id: UUID) -> Task | None:
        """Get a task by ID."""
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def create(self, task: Task) -> Task:
        """Persist a new task, returning the stored snapshot."""
        async with self._lock:
            if task.id in self._tasks:
                raise ValidationError(f"Task {task.id} already exists", field="id")
            stored = task.model_copy(deep=True)
            self._tasks[stored.id] = stored
            return stored.model_copy(deep=True)

    async def update(
        self,
        task_id: UUID,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Task:
        """Apply partial field changes to a task in one atomic write."""
        protected = PROTECTED_FIELDS & changes.keys()
        if protected:
            raise ValidationError(f"Fields cannot be updated: {sorted(protected)}")

        async with self._lock:
            current = self._require(task_id)
            if expected_version is not None and current.version != expected_version:
                raise StaleTaskVersionError(
                    f"Task {task_id} changed since it was read",
                    expected_version=expected_version,
                    actual_version=current.version,
                )

            data = current.model_dump()
            data.update(changes)
            data["version"] = current.version + 1
            data["updated_at"] = utc_now()
            try:
                updated = Task.model_validate(data)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid update for task {task_id}", cause=e) from e

            self._tasks[task_id] = updated
            return updated.model_copy(deep=True)

    async def append_history(
        self,
        task_id: UUID,
        field: str,
        entry: dict[str, Any],
    ) -> Task:
        """Append an entry to one of the task's history lists."""
        async with self._lock:
            current = self._require(task_id)
            history = {key: list(entries) for key, entries in current.history.items()}
            history.setdefault(field, []).append(dict(entry))
            updated = current.model_copy(
                update={
                    "history": history,
                    "version": current.version + 1,
                    "updated_at": utc_now(),
                },
                deep=True,
            )
            self._tasks[task_id] = updated
            return updated.model_copy(deep=True)

    async def list_by_status(
        self,
        statuses: Iterable[TaskStatus],
        *,
        org_id: str | None = None,
        limit: int = 100,
    ) -> list[Task]:
        """List tasks in any of the given statuses."""
        wanted = set(statuses)
        results = []
        for task in self._tasks.values():
            if task.status not in wanted:
                continue
            if org_id is not None and task.org_id != org_id:
                continue
            results.append(task.model_copy(deep=True))
        results.sort(key=lambda x: x.created_at)
        return results[:limit]

    async def get_template(self, template_id: str) -> TaskTemplate | None:
        """Get a task template by ID."""
        return self._templates.get(template_id)

    async def save_template(self, template: TaskTemplate) -> str:
        """Save a template, returning its ID."""
        self._templates[template.id] = template
        return template.id

    def _require(self, task_id: UUID) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", entity="task", entity_id=str(task_id))
        return task
