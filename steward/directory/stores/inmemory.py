"""In-memory implementation of UserDirectory."""

from steward.directory.models import User
from steward.directory.store import UserDirectory


class InMemoryUserDirectory(UserDirectory):
    """In-memory implementation of UserDirectory for testing and development.

    Uses simple dict storage with linear scan for address lookups.
    Not suitable for production use.
    """

    def __init__(self, users: list[User] | None = None) -> None:
        self._users: dict[str, User] = {user.id: user for user in users or []}

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        return self._users.get(user_id)

    async def find_by_address(self, address: str) -> User | None:
        """Find a user by contact address (case-insensitive email match)."""
        wanted = address.strip().lower()
        for user in self._users.values():
            if user.email and user.email.lower() == wanted:
                return user
        return None

    async def save(self, user: User) -> str:
        """Save a user, returning its ID."""
        self._users[user.id] = user
        return user.id
