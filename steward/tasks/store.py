"""TaskStore abstract interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from steward.tasks.models import Task, TaskStatus, TaskTemplate


class TaskStore(ABC):
    """Abstract interface for task and template storage.

    Updates are atomic with respect to reads of the same task: a reader
    observes either the snapshot before an update or the one after it.
    Every successful write increments the task's ``version``.
    """

    @abstractmethod
    async def get(self, task_id: UUID) -> Task | None:
        """Get a task by ID."""
        pass

    @abstractmethod
    async def create(self, task: Task) -> Task:
        """Persist a new task, returning the stored snapshot."""
        pass

    @abstractmethod
    async def update(
        self,
        task_id: UUID,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Task:
        """Apply partial field changes to a task in one atomic write.

        Args:
            task_id: Task to update
            changes: Field name to new value
            expected_version: When given, the write only succeeds if the
                stored task still has this version

        Returns:
            The updated task snapshot

        Raises:
            NotFoundError: If the task does not exist
            StaleTaskVersionError: If expected_version no longer matches
            ValidationError: If the changes produce an invalid task
        """
        pass

    @abstractmethod
    async def append_history(
        self,
        task_id: UUID,
        field: str,
        entry: dict[str, Any],
    ) -> Task:
        """Append an entry to one of the task's history lists.

        Raises:
            NotFoundError: If the task does not exist
        """
        pass

    @abstractmethod
    async def list_by_status(
        self,
        statuses: Iterable[TaskStatus],
        *,
        org_id: str | None = None,
        limit: int = 100,
    ) -> list[Task]:
        """List tasks in any of the given statuses."""
        pass

    @abstractmethod
    async def get_template(self, template_id: str) -> TaskTemplate | None:
        """Get a task template by ID."""
        pass

    @abstractmethod
    async def save_template(self, template: TaskTemplate) -> str:
        """Save a template, returning its ID."""
        pass
