"""Decision log store implementations."""

from steward.decisions.stores.inmemory import InMemoryDecisionLogStore

__all__ = ["InMemoryDecisionLogStore"]
