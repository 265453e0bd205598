"""DecisionLogStore abstract interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from steward.decisions.models import DecisionLogEntry


class DecisionLogStore(ABC):
    """Append-only storage for decision log entries."""

    @abstractmethod
    async def append(self, entry: DecisionLogEntry) -> UUID:
        """Append an entry, returning its ID."""
        pass

    @abstractmethod
    async def list_for_task(
        self,
        task_id: UUID,
        *,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[DecisionLogEntry]:
        """List entries for a task in chronological order."""
        pass

    @abstractmethod
    async def find_by_event(self, task_id: UUID, event_id: UUID) -> list[DecisionLogEntry]:
        """Find the entries a given event produced for a task."""
        pass
