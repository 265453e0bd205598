"""Scheduling configuration models."""

from datetime import time

from pydantic import BaseModel, Field, model_validator


class RankingWeights(BaseModel):
    """Relative weights of the slot scoring criteria.

    Weights are normalized over the criteria actually in play, so the
    context weight only matters when a context string is supplied.
    """

    proximity: float = Field(default=0.4, ge=0.0)
    preferred_hours: float = Field(default=0.4, ge=0.0)
    context_fit: float = Field(default=0.2, ge=0.0)


class SchedulingConfig(BaseModel):
    """Working window and suggestion generation bounds."""

    timezone: str = Field(default="UTC", description="IANA zone of the working window")
    work_start: time = Field(default=time(9, 0), description="Working window start")
    work_end: time = Field(default=time(17, 0), description="Working window end")
    working_days: list[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4],
        description="Weekdays (Monday=0) that have a working window",
    )
    granularity_minutes: int = Field(
        default=30,
        ge=5,
        le=240,
        description="Spacing between candidate slot starts",
    )
    search_days: int = Field(
        default=5,
        ge=1,
        le=30,
        description="Days scanned from the reference date",
    )
    max_candidates: int = Field(
        default=200,
        ge=1,
        le=5000,
        description="Hard cap on generated candidates per request",
    )
    top_n: int = Field(default=5, ge=1, le=20, description="Suggestions returned")
    max_ranked: int = Field(
        default=20,
        ge=1,
        description="Conflict-free candidates considered for ranking",
    )
    max_buffer_minutes: int = Field(default=60, ge=0)
    min_duration_minutes: int = Field(default=15, ge=1)
    max_duration_minutes: int = Field(default=480, ge=1)
    min_block_minutes: int = Field(
        default=15,
        ge=1,
        description="Smallest free block reported by availability",
    )
    max_availability_days: int = Field(default=30, ge=1)
    overbooked_percentage: float = Field(default=75.0, gt=0)
    overbooked_event_count: int = Field(default=6, ge=1)
    weights: RankingWeights = Field(default_factory=RankingWeights)

    @model_validator(mode="after")
    def _check_window(self) -> "SchedulingConfig":
        if self.work_end <= self.work_start:
            raise ValueError("work_end must be after work_start")
        if self.max_duration_minutes < self.min_duration_minutes:
            raise ValueError("max_duration_minutes must be >= min_duration_minutes")
        if any(day < 0 or day > 6 for day in self.working_days):
            raise ValueError("working_days must be weekday numbers 0-6")
        return self
