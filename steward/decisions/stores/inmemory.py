"""In-memory implementation of DecisionLogStore."""

from collections import defaultdict
from uuid import UUID

from steward.decisions.models import DecisionLogEntry
from steward.decisions.store import DecisionLogStore


class InMemoryDecisionLogStore(DecisionLogStore):
    """In-memory implementation of DecisionLogStore for testing and development.

    Entries are kept per task in append order.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._entries: dict[UUID, list[DecisionLogEntry]] = defaultdict(list)

    async def append(self, entry: DecisionLogEntry) -> UUID:
        """Append an entry, returning its ID."""
        self._entries[entry.task_id].append(entry)
        return entry.id

    async def list_for_task(
        self,
        task_id: UUID,
        *,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[DecisionLogEntry]:
        """List entries for a task in chronological order."""
        entries = list(self._entries.get(task_id, []))
        if newest_first:
            entries.reverse()
        if limit is not None:
            entries = entries[:limit]
        return entries

    async def find_by_event(self, task_id: UUID, event_id: UUID) -> list[DecisionLogEntry]:
        """Find the entries a given event produced for a task."""
        return [e for e in self._entries.get(task_id, []) if e.event_id == event_id]
