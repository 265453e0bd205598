"""Scheduling domain models.

All intervals are half-open ``[start, end)``. Naive datetimes are taken
to be UTC.
"""

from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DAY = timedelta(days=1)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware ones are left as they are."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def day_start(value: datetime) -> datetime:
    """Midnight of the day containing ``value``, in its own timezone."""
    return datetime.combine(value.date(), time(0), tzinfo=value.tzinfo)


class Interval(BaseModel):
    """A half-open time interval with ``end`` strictly after ``start``."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _to_aware(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> "Interval":
        if self.end <= self.start:
            raise ValueError("end must be strictly after start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    def overlaps(self, other: "Interval") -> bool:
        """Half-open overlap: back-to-back intervals never overlap."""
        return self.start < other.end and other.start < self.end

    def overlap_with(self, other: "Interval") -> timedelta:
        """Length of the shared part, zero when disjoint."""
        shared = min(self.end, other.end) - max(self.start, other.start)
        return max(shared, timedelta(0))

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def widened(self, minutes: int) -> "Interval":
        """The interval grown by ``minutes`` on both sides."""
        if minutes <= 0:
            return self
        pad = timedelta(minutes=minutes)
        return Interval(start=self.start - pad, end=self.end + pad)


class CommitmentStatus(str, Enum):
    """Commitment status. Cancelled commitments never conflict."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Commitment(BaseModel):
    """A calendar commitment owned by a user.

    All-day commitments cover whole days: ``[day_start, day_start + 24h)``
    for a single day, extended to the end of the last day they touch.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    title: str = Field(default="")
    start: datetime
    end: datetime
    all_day: bool = Field(default=False)
    participants: tuple[str, ...] = Field(default=())
    status: CommitmentStatus = Field(default=CommitmentStatus.SCHEDULED)

    @field_validator("start", "end")
    @classmethod
    def _to_aware(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> "Commitment":
        if self.end < self.start or (self.end == self.start and not self.all_day):
            raise ValueError("end must be strictly after start")
        return self

    @property
    def interval(self) -> Interval:
        """The time the commitment actually blocks."""
        if not self.all_day:
            return Interval(start=self.start, end=self.end)
        first = day_start(self.start)
        last = day_start(self.end)
        end = last if last == self.end and last > first else last + DAY
        return Interval(start=first, end=end)

    @property
    def active(self) -> bool:
        return self.status != CommitmentStatus.CANCELLED


class OverlapType(str, Enum):
    FULL_OVERLAP = "full_overlap"  # One interval contains the other
    PARTIAL_OVERLAP = "partial_overlap"


class Severity(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConflictDetail(BaseModel):
    """One commitment that overlaps the queried interval."""

    commitment: Commitment
    overlap_type: OverlapType
    overlap_minutes: float
    score: float = Field(..., ge=0, le=100, description="0 none, 100 complete overlap")


class ConflictResult(BaseModel):
    """Conflicts of one owner with a queried interval."""

    owner_id: str
    query: Interval
    conflicts: list[ConflictDetail] = Field(default_factory=list)
    severity: Severity = Severity.NONE

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)


class ParticipantStatus(str, Enum):
    CHECKED = "checked"
    NOT_EVALUATED = "not_evaluated"  # No stored record for this address


class ParticipantConflicts(BaseModel):
    """Conflict check outcome for one participant address."""

    address: str
    status: ParticipantStatus
    user_id: str | None = None
    conflicts: list[ConflictDetail] = Field(default_factory=list)


class ConflictReport(BaseModel):
    """Conflict check for a user and the participants of a proposed slot."""

    user: ConflictResult
    participants: list[ParticipantConflicts] = Field(default_factory=list)
    severity: Severity = Severity.NONE

    @property
    def total_conflicts(self) -> int:
        return len(self.user.conflicts) + sum(len(p.conflicts) for p in self.participants)

    @property
    def has_conflicts(self) -> bool:
        return self.total_conflicts > 0

    @property
    def unchecked_addresses(self) -> list[str]:
        return [
            p.address for p in self.participants if p.status == ParticipantStatus.NOT_EVALUATED
        ]


class PreferredPeriod(str, Enum):
    """Named parts of the day a caller may prefer."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def hours(self) -> tuple[time, time]:
        return PERIOD_HOURS[self]


PERIOD_HOURS: dict[PreferredPeriod, tuple[time, time]] = {
    PreferredPeriod.MORNING: (time(8, 0), time(12, 0)),
    PreferredPeriod.AFTERNOON: (time(12, 0), time(17, 0)),
    PreferredPeriod.EVENING: (time(17, 0), time(21, 0)),
}


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RankedSlot(BaseModel):
    """A conflict-free slot with its ranking."""

    start: datetime
    end: datetime
    rank: int = Field(..., ge=1)
    score: float = Field(..., ge=0, le=100)
    confidence: Confidence
    reasoning: str
    components: dict[str, float] = Field(
        default_factory=dict, description="Per-criterion scores before weighting"
    )


class DayLoad(BaseModel):
    """How booked a user's day is."""

    day: date
    event_count: int
    booked_minutes: float
    percentage_booked: float
    overbooked: bool
    message: str


class RankedSlots(BaseModel):
    """Suggestion result.

    An empty ``suggestions`` list is a valid outcome: every candidate was
    filtered out by conflicts, or none could be generated.
    """

    suggestions: list[RankedSlot] = Field(default_factory=list)
    total_candidates: int = 0
    conflict_free_count: int = 0
    criteria: list[str] = Field(default_factory=list)
    analysis_context: str = ""
    day_load: list[DayLoad] = Field(default_factory=list)
    unchecked_participants: list[str] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.suggestions


class FreeBlock(BaseModel):
    """A gap in a user's working window."""

    start: datetime
    end: datetime
    duration_minutes: float


class DayAvailability(BaseModel):
    """Free blocks and load of one working day."""

    day: date
    free_blocks: list[FreeBlock] = Field(default_factory=list)
    load: DayLoad
