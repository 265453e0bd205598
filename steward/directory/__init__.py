"""User directory."""

from steward.directory.models import AvailabilityRule, User
from steward.directory.store import UserDirectory

__all__ = ["AvailabilityRule", "User", "UserDirectory"]
