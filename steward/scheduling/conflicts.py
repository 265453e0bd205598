"""Conflict detection.

Two intervals ``[a0, a1)`` and ``[b0, b1)`` conflict iff ``a0 < b1`` and
``b0 < a1``. Back-to-back and zero-length intervals never conflict.
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

import pydantic

from steward.directory.store import UserDirectory
from steward.errors import ValidationError, dependency_boundary
from steward.observability.logging import get_logger
from steward.observability.metrics import CONFLICT_CHECKS
from steward.scheduling.models import (
    Commitment,
    ConflictDetail,
    ConflictReport,
    ConflictResult,
    Interval,
    OverlapType,
    ParticipantConflicts,
    ParticipantStatus,
    Severity,
)
from steward.scheduling.store import CommitmentStore

logger = get_logger(__name__)

BACK_TO_BACK_SCORE = 10.0


def make_interval(start: datetime, end: datetime) -> Interval:
    """Build an interval, raising the engine's ValidationError when invalid."""
    try:
        return Interval(start=start, end=end)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "end time must be strictly after start time", field="endTime", cause=e
        ) from e


def score_conflict(a: Interval, b: Interval) -> float:
    """Score how badly two intervals collide, from 0 to 100.

    - One contains the other: 100
    - Overlap of 75% or more of the shorter interval: 80-99
    - 50-75%: 50-79
    - 25-50%: 25-49
    - Under 25%: 1-24
    - Back-to-back: 10 (informational, never a conflict)
    - Disjoint: 0
    """
    if not a.overlaps(b):
        if a.end == b.start or b.end == a.start:
            return BACK_TO_BACK_SCORE
        return 0.0

    if a.contains(b) or b.contains(a):
        return 100.0

    shorter = min(a.duration, b.duration)
    percentage = a.overlap_with(b) / shorter * 100

    if percentage >= 75:
        score = min(80 + (percentage - 75) * 0.8, 99)
    elif percentage >= 50:
        score = 50 + (percentage - 50) * 1.2
    elif percentage >= 25:
        score = 25 + (percentage - 25)
    else:
        score = max(1, percentage)
    return round(score, 1)


def severity_for(scores: Iterable[float]) -> Severity:
    """Severity from the worst conflict score."""
    worst = max(scores, default=None)
    if worst is None:
        return Severity.NONE
    if worst >= 80:
        return Severity.HIGH
    if worst >= 50:
        return Severity.MEDIUM
    return Severity.LOW


def detect_conflicts(
    owner_id: str,
    candidate: Interval,
    commitments: Iterable[Commitment],
    exclude_id: UUID | None = None,
) -> ConflictResult:
    """Find the commitments of one owner that overlap a candidate interval.

    Args:
        owner_id: Owner whose commitments are checked
        candidate: Proposed interval
        commitments: Owner's commitments (cancelled ones are ignored)
        exclude_id: Commitment to skip, e.g. the one being rescheduled

    Returns:
        Conflicts ordered by start time, with the overall severity
    """
    conflicts = []
    for commitment in commitments:
        if not commitment.active or commitment.id == exclude_id:
            continue
        blocked = commitment.interval
        if not candidate.overlaps(blocked):
            continue
        overlap_type = (
            OverlapType.FULL_OVERLAP
            if blocked.contains(candidate) or candidate.contains(blocked)
            else OverlapType.PARTIAL_OVERLAP
        )
        conflicts.append(
            ConflictDetail(
                commitment=commitment,
                overlap_type=overlap_type,
                overlap_minutes=candidate.overlap_with(blocked).total_seconds() / 60,
                score=score_conflict(candidate, blocked),
            )
        )

    conflicts.sort(key=lambda c: c.commitment.interval.start)
    return ConflictResult(
        owner_id=owner_id,
        query=candidate,
        conflicts=conflicts,
        severity=severity_for(c.score for c in conflicts),
    )


class ConflictService:
    """Conflict checks against stored commitments.

    Read-only; never takes task locks.
    """

    def __init__(self, commitments: CommitmentStore, users: UserDirectory) -> None:
        self._commitments = commitments
        self._users = users

    async def check(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        participant_addresses: Iterable[str] = (),
        exclude_id: UUID | None = None,
    ) -> ConflictReport:
        """Check a proposed slot for a user and its participants.

        Participants are resolved by contact address; addresses without a
        stored user are reported as not evaluated rather than free.

        Raises:
            ValidationError: If end is not after start
            DependencyError: If a store failed
        """
        candidate = make_interval(start, end)

        with dependency_boundary("commitment lookup"):
            own = await self._commitments.list_for_owner(user_id, candidate.start, candidate.end)
        user_result = detect_conflicts(user_id, candidate, own, exclude_id)

        participants = []
        for address in dict.fromkeys(a.strip() for a in participant_addresses if a.strip()):
            with dependency_boundary("user lookup"):
                user = await self._users.find_by_address(address)
            if user is None:
                participants.append(
                    ParticipantConflicts(address=address, status=ParticipantStatus.NOT_EVALUATED)
                )
                continue
            with dependency_boundary("commitment lookup"):
                theirs = await self._commitments.list_for_owner(
                    user.id, candidate.start, candidate.end
                )
            result = detect_conflicts(user.id, candidate, theirs, exclude_id)
            participants.append(
                ParticipantConflicts(
                    address=address,
                    status=ParticipantStatus.CHECKED,
                    user_id=user.id,
                    conflicts=result.conflicts,
                )
            )

        scores = [c.score for c in user_result.conflicts]
        scores.extend(c.score for p in participants for c in p.conflicts)
        report = ConflictReport(
            user=user_result,
            participants=participants,
            severity=severity_for(scores),
        )

        CONFLICT_CHECKS.labels(has_conflicts=str(report.has_conflicts).lower()).inc()
        logger.info(
            "conflict_check_completed",
            user_id=user_id,
            total_conflicts=report.total_conflicts,
            severity=report.severity.value,
            unchecked_participants=len(report.unchecked_addresses),
        )
        return report
