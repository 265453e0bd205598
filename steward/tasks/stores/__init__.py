"""Task store implementations."""

from steward.tasks.stores.inmemory import InMemoryTaskStore

__all__ = ["InMemoryTaskStore"]
