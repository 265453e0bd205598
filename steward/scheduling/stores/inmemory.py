"""In-memory implementation of CommitmentStore."""

from datetime import datetime
from uuid import UUID

from steward.scheduling.models import Commitment, Interval
from steward.scheduling.store import CommitmentStore


class InMemoryCommitmentStore(CommitmentStore):
    """In-memory implementation of CommitmentStore for testing and development.

    Uses simple dict storage with linear scan for queries.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._commitments: dict[UUID, Commitment] = {}

    async def list_for_owner(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Commitment]:
        """List an owner's commitments that touch ``[start, end)``."""
        window = Interval(start=start, end=end)
        results = [
            c
            for c in self._commitments.values()
            if c.owner_id == owner_id and c.interval.overlaps(window)
        ]
        results.sort(key=lambda x: x.interval.start)
        return results

    async def get(self, commitment_id: UUID) -> Commitment | None:
        """Get a commitment by ID."""
        return self._commitments.get(commitment_id)

    async def save(self, commitment: Commitment) -> UUID:
        """Save a commitment, returning its ID."""
        self._commitments[commitment.id] = commitment
        return commitment.id
