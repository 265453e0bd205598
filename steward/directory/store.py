"""UserDirectory abstract interface."""

from abc import ABC, abstractmethod

from steward.directory.models import User


class UserDirectory(ABC):
    """Lookup of known users by id or contact address."""

    @abstractmethod
    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        pass

    @abstractmethod
    async def find_by_address(self, address: str) -> User | None:
        """Find a user by contact address (case-insensitive email match)."""
        pass
