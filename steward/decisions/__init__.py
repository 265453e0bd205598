"""Decision log: the append-only audit of every task evaluation."""

from steward.decisions.models import Decision, DecisionLogEntry, DecisionOutcome
from steward.decisions.store import DecisionLogStore

__all__ = ["Decision", "DecisionLogEntry", "DecisionLogStore", "DecisionOutcome"]
