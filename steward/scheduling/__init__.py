"""Conflict detection, slot suggestions and availability."""

from steward.scheduling.availability import AvailabilityService
from steward.scheduling.conflicts import ConflictService, detect_conflicts, score_conflict
from steward.scheduling.models import (
    Commitment,
    ConflictReport,
    ConflictResult,
    Interval,
    PreferredPeriod,
    RankedSlots,
)
from steward.scheduling.store import CommitmentStore
from steward.scheduling.suggestions import SuggestionEngine

__all__ = [
    "AvailabilityService",
    "Commitment",
    "CommitmentStore",
    "ConflictReport",
    "ConflictResult",
    "ConflictService",
    "Interval",
    "PreferredPeriod",
    "RankedSlots",
    "SuggestionEngine",
    "detect_conflicts",
    "score_conflict",
]
