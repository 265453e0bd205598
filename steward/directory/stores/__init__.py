"""User directory implementations."""

from steward.directory.stores.inmemory import InMemoryUserDirectory

__all__ = ["InMemoryUserDirectory"]
