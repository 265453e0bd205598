"""User directory models."""

from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AvailabilityRule(BaseModel):
    """A weekly window in which a user accepts meetings.

    Times are wall-clock times in the user's timezone. Rules with
    ``is_available`` false are kept for the record but open no window.
    """

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(..., ge=0, le=6, description="Weekday, Monday=0")
    start_time: time
    end_time: time
    is_available: bool = Field(default=True)

    @model_validator(mode="after")
    def _check_times(self) -> "AvailabilityRule":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class User(BaseModel):
    """A person who can own commitments, act on tasks or receive notices."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="User identifier")
    org_id: str = Field(..., min_length=1, description="Organization scope")
    name: str = Field(default="")
    email: str | None = Field(default=None, description="Primary contact address")
    timezone: str | None = Field(
        default=None,
        description="IANA timezone name; the scheduling default applies when unset",
    )
    active: bool = Field(default=True, description="Inactive users cannot act on tasks")
    availability: tuple[AvailabilityRule, ...] = Field(
        default=(),
        description="Weekly availability; the configured working window applies when empty",
    )

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {v!r}") from e
        return v
