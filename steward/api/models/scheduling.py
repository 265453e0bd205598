"""Request and response models for scheduling endpoints."""

from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from steward.api.models.base import CamelModel
from steward.scheduling.models import (
    Confidence,
    ConflictDetail,
    ConflictReport,
    DayAvailability,
    DayLoad,
    OverlapType,
    ParticipantStatus,
    PreferredPeriod,
    RankedSlots,
    Severity,
)


class ConflictCheckRequest(CamelModel):
    """Body of POST /v1/scheduling/{user_id}/conflicts."""

    start_time: datetime
    end_time: datetime
    participant_addresses: list[str] = Field(default_factory=list, max_length=50)
    exclude_event_id: UUID | None = Field(
        default=None, description="Commitment being rescheduled, ignored in the check"
    )


class SuggestionRequest(CamelModel):
    """Body of POST /v1/scheduling/{user_id}/suggestions.

    Duration and buffer bounds are enforced by the suggestion engine
    against the configured limits.
    """

    duration_minutes: int
    participant_addresses: list[str] = Field(default_factory=list, max_length=50)
    preferred_dates: list[date | datetime] | None = Field(
        default=None, description="ISO-8601 dates or datetimes; datetimes count for their date"
    )
    preferred_period: PreferredPeriod | None = None
    buffer_minutes: int = 0
    context: str | None = Field(default=None, max_length=2000)
    reference_date: datetime | None = Field(
        default=None, description="Search start, defaults to tomorrow's working start"
    )


class ConflictView(CamelModel):
    event_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    all_day: bool
    conflict_type: OverlapType
    conflict_score: float
    overlap_minutes: float

    @classmethod
    def from_detail(cls, detail: ConflictDetail) -> "ConflictView":
        blocked = detail.commitment.interval
        return cls(
            event_id=detail.commitment.id,
            title=detail.commitment.title,
            start_time=blocked.start,
            end_time=blocked.end,
            all_day=detail.commitment.all_day,
            conflict_type=detail.overlap_type,
            conflict_score=detail.score,
            overlap_minutes=detail.overlap_minutes,
        )


class ParticipantConflictView(CamelModel):
    address: str
    status: ParticipantStatus
    conflicts: list[ConflictView] = Field(default_factory=list)


class ConflictCheckResponse(CamelModel):
    """Conflicts of the user and participants with the proposed slot."""

    has_conflicts: bool
    total_conflicts: int
    user_conflicts: list[ConflictView] = Field(default_factory=list)
    participant_conflicts: list[ParticipantConflictView] = Field(default_factory=list)
    severity: Severity

    @classmethod
    def from_report(cls, report: ConflictReport) -> "ConflictCheckResponse":
        return cls(
            has_conflicts=report.has_conflicts,
            total_conflicts=report.total_conflicts,
            user_conflicts=[ConflictView.from_detail(c) for c in report.user.conflicts],
            participant_conflicts=[
                ParticipantConflictView(
                    address=p.address,
                    status=p.status,
                    conflicts=[ConflictView.from_detail(c) for c in p.conflicts],
                )
                for p in report.participants
            ],
            severity=report.severity,
        )


class SlotView(CamelModel):
    start_time: datetime
    end_time: datetime
    rank: int
    score: float
    confidence: Confidence
    reasoning: str


class DayLoadView(CamelModel):
    day: date = Field(..., alias="date")
    event_count: int
    booked_minutes: float
    percentage_booked: float
    overbooked: bool
    message: str

    @classmethod
    def from_load(cls, load: DayLoad) -> "DayLoadView":
        return cls(
            day=load.day,
            event_count=load.event_count,
            booked_minutes=load.booked_minutes,
            percentage_booked=load.percentage_booked,
            overbooked=load.overbooked,
            message=load.message,
        )


class SuggestionResponse(CamelModel):
    """Ranked suggestions; an empty list means nothing fit."""

    suggestions: list[SlotView] = Field(default_factory=list)
    total_candidates: int
    conflict_free_count: int
    criteria: list[str] = Field(default_factory=list)
    analysis_context: str
    day_load: list[DayLoadView] = Field(default_factory=list)
    unchecked_participants: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RankedSlots) -> "SuggestionResponse":
        return cls(
            suggestions=[
                SlotView(
                    start_time=s.start,
                    end_time=s.end,
                    rank=s.rank,
                    score=s.score,
                    confidence=s.confidence,
                    reasoning=s.reasoning,
                )
                for s in result.suggestions
            ],
            total_candidates=result.total_candidates,
            conflict_free_count=result.conflict_free_count,
            criteria=result.criteria,
            analysis_context=result.analysis_context,
            day_load=[DayLoadView.from_load(d) for d in result.day_load],
            unchecked_participants=result.unchecked_participants,
        )


class FreeBlockView(CamelModel):
    start_time: datetime
    end_time: datetime
    duration_minutes: float


class DayAvailabilityView(CamelModel):
    day: date = Field(..., alias="date")
    free_blocks: list[FreeBlockView] = Field(default_factory=list)
    load: DayLoadView

    @classmethod
    def from_day(cls, day: DayAvailability) -> "DayAvailabilityView":
        return cls(
            day=day.day,
            free_blocks=[
                FreeBlockView(
                    start_time=b.start, end_time=b.end, duration_minutes=b.duration_minutes
                )
                for b in day.free_blocks
            ],
            load=DayLoadView.from_load(day.load),
        )


class AvailabilityResponse(CamelModel):
    user_id: str
    days: list[DayAvailabilityView] = Field(default_factory=list)
