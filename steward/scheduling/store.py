"""CommitmentStore abstract interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from steward.scheduling.models import Commitment


class CommitmentStore(ABC):
    """Read access to users' calendar commitments."""

    @abstractmethod
    async def list_for_owner(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Commitment]:
        """List an owner's commitments that touch ``[start, end)``.

        All-day commitments are matched on the whole days they cover.
        Cancelled commitments are included; callers filter on status.
        """
        pass

    @abstractmethod
    async def get(self, commitment_id: UUID) -> Commitment | None:
        """Get a commitment by ID."""
        pass

    @abstractmethod
    async def save(self, commitment: Commitment) -> UUID:
        """Save a commitment, returning its ID."""
        pass
