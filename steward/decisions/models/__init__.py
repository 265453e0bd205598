"""Decision domain models."""

from steward.decisions.models.decision import Decision, DecisionLogEntry, DecisionOutcome

__all__ = ["Decision", "DecisionLogEntry", "DecisionOutcome"]
