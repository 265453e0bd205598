"""Commitment store implementations."""

from steward.scheduling.stores.inmemory import InMemoryCommitmentStore

__all__ = ["InMemoryCommitmentStore"]
