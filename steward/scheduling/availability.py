"""Working windows, day load and free blocks."""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from steward.config.models import SchedulingConfig
from steward.directory.models import User
from steward.directory.store import UserDirectory
from steward.errors import ValidationError, dependency_boundary
from steward.observability.logging import get_logger
from steward.scheduling.models import (
    Commitment,
    DayAvailability,
    DayLoad,
    FreeBlock,
    Interval,
    PreferredPeriod,
)
from steward.scheduling.store import CommitmentStore

logger = get_logger(__name__)


def window_for(
    day: date,
    start: time,
    end: time,
    tz: ZoneInfo,
) -> Interval:
    """The interval between two wall-clock times of a day."""
    return Interval(
        start=datetime.combine(day, start, tzinfo=tz),
        end=datetime.combine(day, end, tzinfo=tz),
    )


def _merge_spans(spans: list[tuple[time, time]]) -> list[tuple[time, time]]:
    merged: list[tuple[time, time]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


class WorkingHours:
    """Weekly working windows of one user, in that user's timezone.

    Windows come from the user's availability rules, or from the
    configured working window when the user has no rules.
    """

    def __init__(
        self,
        tz: ZoneInfo,
        spans: dict[int, list[tuple[time, time]]],
        from_rules: bool = False,
    ) -> None:
        self.tz = tz
        self.from_rules = from_rules
        self._spans = {day: _merge_spans(s) for day, s in spans.items() if s}

    @classmethod
    def from_config(cls, config: SchedulingConfig, tz: ZoneInfo | None = None) -> "WorkingHours":
        span = (config.work_start, config.work_end)
        return cls(
            tz or ZoneInfo(config.timezone),
            {day: [span] for day in config.working_days},
        )

    @classmethod
    def for_user(cls, user: User | None, config: SchedulingConfig) -> "WorkingHours":
        """Working hours of ``user``; unknown users get the configured window."""
        if user is None:
            return cls.from_config(config)
        tz = ZoneInfo(user.timezone or config.timezone)
        if not user.availability:
            return cls.from_config(config, tz)

        spans: dict[int, list[tuple[time, time]]] = {}
        for rule in user.availability:
            if rule.is_available:
                spans.setdefault(rule.day_of_week, []).append((rule.start_time, rule.end_time))
        return cls(tz, spans, from_rules=True)

    def works_on(self, day: date) -> bool:
        return day.weekday() in self._spans

    def windows(self, day: date, period: PreferredPeriod | None = None) -> list[Interval]:
        """A day's working windows, in order.

        A preferred period replaces the configured window, but only
        narrows windows that come from availability rules.
        """
        spans = self._spans.get(day.weekday(), [])
        if period is not None and spans:
            period_start, period_end = period.hours
            if not self.from_rules:
                spans = [(period_start, period_end)]
            else:
                spans = [
                    (max(start, period_start), min(end, period_end))
                    for start, end in spans
                    if max(start, period_start) < min(end, period_end)
                ]
        return [window_for(day, start, end, self.tz) for start, end in spans]

    def minutes(self, day: date) -> float:
        return sum(w.duration.total_seconds() for w in self.windows(day)) / 60

    def describe(self) -> str:
        if self.from_rules:
            return f"availability_rules {self.tz.key}"
        spans = {s for day_spans in self._spans.values() for s in day_spans}
        text = ",".join(f"{start:%H:%M}-{end:%H:%M}" for start, end in sorted(spans))
        return f"working_window:{text} {self.tz.key}"


def workday_minutes(config: SchedulingConfig) -> float:
    start = datetime.combine(date.min, config.work_start)
    end = datetime.combine(date.min, config.work_end)
    return (end - start).total_seconds() / 60


def compute_day_load(
    day: date,
    commitments: Iterable[Commitment],
    config: SchedulingConfig,
    hours: WorkingHours | None = None,
) -> DayLoad:
    """How booked a day is, against the length of the working day.

    A day is overbooked at ``overbooked_percentage`` of the working day or
    ``overbooked_event_count`` commitments, whichever comes first.
    """
    hours = hours or WorkingHours.from_config(config)
    tz = hours.tz
    calendar_day = Interval(
        start=datetime.combine(day, time(0), tzinfo=tz),
        end=datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz),
    )

    count = 0
    booked = 0.0
    for commitment in commitments:
        if not commitment.active:
            continue
        shared = calendar_day.overlap_with(commitment.interval)
        if shared <= timedelta(0):
            continue
        count += 1
        booked += shared.total_seconds() / 60

    percentage = booked / (hours.minutes(day) or workday_minutes(config)) * 100
    overbooked = (
        percentage >= config.overbooked_percentage
        or count >= config.overbooked_event_count
    )
    hours = booked / 60
    if overbooked:
        message = (
            f"Warning: this date appears heavily booked ({count} events, "
            f"{hours:.1f} hours scheduled, {percentage:.0f}% of workday)."
        )
    elif percentage >= 50:
        message = (
            f"Note: this date is moderately booked ({count} events, "
            f"{hours:.1f} hours scheduled)."
        )
    else:
        message = (
            f"This date has good availability ({count} events, "
            f"{hours:.1f} hours scheduled)."
        )

    return DayLoad(
        day=day,
        event_count=count,
        booked_minutes=round(booked, 1),
        percentage_booked=round(percentage),
        overbooked=overbooked,
        message=message,
    )


def find_free_blocks(
    window: Interval,
    busy: Iterable[Interval],
    min_minutes: int,
) -> list[FreeBlock]:
    """Gaps of at least ``min_minutes`` inside a window.

    Args:
        window: Interval to search
        busy: Blocked intervals, in any order, possibly overlapping
        min_minutes: Smallest gap worth reporting

    Returns:
        Free blocks in chronological order
    """
    blocks = []
    cursor = window.start
    for interval in sorted(busy, key=lambda i: i.start):
        if interval.end <= cursor or interval.start >= window.end:
            continue
        if interval.start > cursor:
            blocks.append((cursor, min(interval.start, window.end)))
        cursor = max(cursor, interval.end)
        if cursor >= window.end:
            break
    if cursor < window.end:
        blocks.append((cursor, window.end))

    free = []
    for start, end in blocks:
        minutes = (end - start).total_seconds() / 60
        if minutes >= min_minutes:
            free.append(FreeBlock(start=start, end=end, duration_minutes=minutes))
    return free


class AvailabilityService:
    """Free working-time blocks per day for a user."""

    def __init__(
        self,
        commitments: CommitmentStore,
        users: UserDirectory,
        config: SchedulingConfig,
    ) -> None:
        self._commitments = commitments
        self._users = users
        self._config = config

    async def working_hours(self, user_id: str) -> WorkingHours:
        """The user's working hours, or the configured window for unknown users."""
        with dependency_boundary("user lookup"):
            user = await self._users.get_user(user_id)
        return WorkingHours.for_user(user, self._config)

    async def availability(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
    ) -> list[DayAvailability]:
        """Free blocks and load of every working day in ``[start_date, end_date]``.

        Days are calendar days in the user's timezone.

        Raises:
            ValidationError: If the range is reversed or longer than allowed
            DependencyError: If a store failed
        """
        if end_date < start_date:
            raise ValidationError("end date must not be before start date", field="endDate")
        days = (end_date - start_date).days + 1
        if days > self._config.max_availability_days:
            raise ValidationError(
                f"date range cannot exceed {self._config.max_availability_days} days",
                field="endDate",
            )

        hours = await self.working_hours(user_id)
        range_start = datetime.combine(start_date, time(0), tzinfo=hours.tz)
        range_end = datetime.combine(end_date + timedelta(days=1), time(0), tzinfo=hours.tz)
        with dependency_boundary("commitment lookup"):
            commitments = await self._commitments.list_for_owner(user_id, range_start, range_end)
        busy = [c.interval for c in commitments if c.active]

        result = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            if not hours.works_on(day):
                continue
            free_blocks = [
                block
                for window in hours.windows(day)
                for block in find_free_blocks(window, busy, self._config.min_block_minutes)
            ]
            result.append(
                DayAvailability(
                    day=day,
                    free_blocks=free_blocks,
                    load=compute_day_load(day, commitments, self._config, hours),
                )
            )

        logger.info(
            "availability_computed",
            user_id=user_id,
            timezone=hours.tz.key,
            days=len(result),
            free_blocks=sum(len(d.free_blocks) for d in result),
        )
        return result
