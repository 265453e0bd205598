"""Time-slot suggestions.

Candidates are generated at a fixed granularity inside the user's working
hours (availability rules, or the configured working window for users
without rules) in the user's timezone, narrowed or replaced by the
caller's preferred part of the day, from the reference date
onward, up to a hard cap. Candidates that conflict with the user's or a
resolvable participant's commitments are dropped; survivors are scored on
proximity to the reference time, time-of-day preference and, when a
context string is supplied, fit to that context.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from steward.config.models import SchedulingConfig
from steward.directory.store import UserDirectory
from steward.errors import ValidationError, dependency_boundary
from steward.observability.logging import get_logger
from steward.observability.metrics import SUGGESTION_CANDIDATES, SUGGESTION_REQUESTS
from steward.scheduling.availability import WorkingHours, compute_day_load
from steward.scheduling.conflicts import detect_conflicts
from steward.scheduling.models import (
    Commitment,
    Confidence,
    Interval,
    PreferredPeriod,
    RankedSlot,
    RankedSlots,
    as_utc,
)
from steward.scheduling.store import CommitmentStore

logger = get_logger(__name__)

# Calendar days scanned per requested working day before giving up
SCAN_FACTOR = 3


def time_of_day_score(local_start: datetime) -> float:
    """Business-hours preference for a slot start, 70-90."""
    hour = local_start.hour + local_start.minute / 60
    if 9 <= hour < 11:
        return 90.0
    if 13 <= hour < 15:
        return 85.0
    if 11 <= hour < 12:
        return 80.0
    if 8 <= hour < 9 or 15 <= hour < 16:
        return 75.0
    return 70.0


def confidence_for(score: float) -> Confidence:
    if score >= 85:
        return Confidence.HIGH
    if score >= 70:
        return Confidence.MEDIUM
    return Confidence.LOW


class ContextScorer(Protocol):
    """Scores how well a slot fits a free-text scheduling context."""

    def score(
        self,
        slot: Interval,
        context: str,
        reference: datetime,
        tz: ZoneInfo,
    ) -> tuple[float, str] | None:
        """Return (score 0-100, reason), or None when the context says nothing."""
        ...


class KeywordContextScorer:
    """Keyword hints mapped to the slots they favour.

    A context that mentions no known hint is neutral and drops out of
    the weighting.
    """

    HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
        ("morning", ("morning", "breakfast", "early", "start of day")),
        ("lunch", ("lunch", "midday", "noon")),
        ("afternoon", ("afternoon", "after lunch")),
        ("end_of_day", ("end of day", "evening", "wrap up", "wrap-up", "late")),
        ("urgent", ("urgent", "asap", "as soon as possible", "soon")),
        ("focus", ("focus", "deep work", "workshop", "planning", "strategy", "brainstorm")),
    )

    def score(
        self,
        slot: Interval,
        context: str,
        reference: datetime,
        tz: ZoneInfo,
    ) -> tuple[float, str] | None:
        text = context.lower()
        hints = [name for name, words in self.HINTS if any(w in text for w in words)]
        if not hints:
            return None

        local = slot.start.astimezone(tz)
        fits = [name for name in hints if self._fits(name, local, slot, reference)]
        score = 40 + 60 * len(fits) / len(hints)
        if fits:
            reason = f"fits context ({', '.join(fits)})"
        else:
            reason = f"does not match context ({', '.join(hints)})"
        return round(score, 1), reason

    @staticmethod
    def _fits(hint: str, local: datetime, slot: Interval, reference: datetime) -> bool:
        start = local.time()
        match hint:
            case "morning":
                return start < time(12)
            case "lunch":
                return time(11, 30) <= start < time(13, 30)
            case "afternoon":
                return time(12) <= start < time(17)
            case "end_of_day":
                return start >= time(15)
            case "urgent":
                return slot.start - reference <= timedelta(hours=24)
            case "focus":
                return start < time(12) and slot.duration >= timedelta(minutes=60)
        return False


class SuggestionEngine:
    """Generates, filters and ranks candidate slots.

    Read-only; never takes task locks.
    """

    def __init__(
        self,
        commitments: CommitmentStore,
        users: UserDirectory,
        config: SchedulingConfig,
        context_scorer: ContextScorer | None = None,
    ) -> None:
        self._commitments = commitments
        self._users = users
        self._config = config
        self._context_scorer = context_scorer or KeywordContextScorer()

    async def suggest_slots(
        self,
        user_id: str,
        duration_minutes: int,
        participant_addresses: Sequence[str] = (),
        reference_date: datetime | date | None = None,
        context: str | None = None,
        *,
        preferred_dates: Iterable[date | datetime] | None = None,
        preferred_period: PreferredPeriod | None = None,
        buffer_minutes: int = 0,
    ) -> RankedSlots:
        """Suggest up to ``top_n`` conflict-free slots.

        Args:
            user_id: User the slot is for
            duration_minutes: Slot length, within the configured bounds
            participant_addresses: Contact addresses of other attendees
            reference_date: Date or datetime to search from (default: tomorrow)
            context: Free text describing the meeting
            preferred_dates: Search only these dates instead of the next days;
                datetimes count for their date in the user's timezone
            preferred_period: Search only this part of the day
            buffer_minutes: Free time required around existing commitments

        Returns:
            Ranked slots; an empty list is a valid outcome

        Raises:
            ValidationError: If duration or buffer is out of range
            DependencyError: If a store failed
        """
        config = self._config
        if not config.min_duration_minutes <= duration_minutes <= config.max_duration_minutes:
            raise ValidationError(
                f"duration must be between {config.min_duration_minutes} and "
                f"{config.max_duration_minutes} minutes",
                field="durationMinutes",
            )
        if not 0 <= buffer_minutes <= config.max_buffer_minutes:
            raise ValidationError(
                f"buffer must be between 0 and {config.max_buffer_minutes} minutes",
                field="bufferMinutes",
            )

        with dependency_boundary("user lookup"):
            user = await self._users.get_user(user_id)
        hours = WorkingHours.for_user(user, config)

        dates = sorted(
            {
                as_utc(d).astimezone(hours.tz).date() if isinstance(d, datetime) else d
                for d in preferred_dates or ()
            }
        )
        if reference_date is None and dates:
            reference_date = dates[0]
        reference = self._reference(reference_date, hours)
        days = self._days(reference, dates, hours)
        candidates, capped = self._candidates(
            days, duration_minutes, reference, preferred_period, hours
        )
        SUGGESTION_CANDIDATES.observe(len(candidates))

        own, busy, unchecked = await self._load_commitments(
            user_id, participant_addresses, days, buffer_minutes, hours.tz
        )
        free = [
            slot
            for slot in candidates
            if not detect_conflicts(user_id, slot.widened(buffer_minutes), busy).has_conflict
        ]

        pool = free[: config.max_ranked]
        scored = [
            self._score(slot, reference, context, preferred_period, hours.tz) for slot in pool
        ]
        scored.sort(key=lambda item: (-item[0], item[1].start))
        suggestions = [
            RankedSlot(
                start=slot.start,
                end=slot.end,
                rank=rank,
                score=score,
                confidence=confidence_for(score),
                reasoning=reasoning,
                components=components,
            )
            for rank, (score, slot, reasoning, components) in enumerate(
                scored[: config.top_n], start=1
            )
        ]

        result = RankedSlots(
            suggestions=suggestions,
            total_candidates=len(candidates),
            conflict_free_count=len(free),
            criteria=self._criteria(
                hours, context, preferred_period, buffer_minutes, participant_addresses
            ),
            analysis_context=self._analysis(
                len(candidates), len(free), len(suggestions), unchecked, capped
            ),
            day_load=[compute_day_load(day, own, config, hours) for day in days],
            unchecked_participants=unchecked,
        )

        SUGGESTION_REQUESTS.labels(result="found" if suggestions else "empty").inc()
        logger.info(
            "slots_suggested",
            user_id=user_id,
            timezone=hours.tz.key,
            duration_minutes=duration_minutes,
            total_candidates=result.total_candidates,
            conflict_free=result.conflict_free_count,
            returned=len(suggestions),
            capped=capped,
        )
        return result

    def _reference(self, reference_date: datetime | date | None, hours: WorkingHours) -> datetime:
        tz = hours.tz
        if reference_date is None:
            reference_date = datetime.now(tz).date() + timedelta(days=1)
        elif isinstance(reference_date, datetime):
            return as_utc(reference_date).astimezone(tz)
        windows = hours.windows(reference_date)
        if windows:
            return windows[0].start
        return datetime.combine(reference_date, self._config.work_start, tzinfo=tz)

    def _days(
        self,
        reference: datetime,
        preferred_dates: list[date],
        hours: WorkingHours,
    ) -> list[date]:
        if preferred_dates:
            chosen = [d for d in preferred_dates if hours.works_on(d)]
            return chosen[: self._config.search_days]

        days = []
        day = reference.date()
        for _ in range(self._config.search_days * SCAN_FACTOR):
            if hours.works_on(day):
                days.append(day)
                if len(days) == self._config.search_days:
                    break
            day += timedelta(days=1)
        return days

    def _candidates(
        self,
        days: list[date],
        duration_minutes: int,
        reference: datetime,
        period: PreferredPeriod | None,
        hours: WorkingHours,
    ) -> tuple[list[Interval], bool]:
        step = timedelta(minutes=self._config.granularity_minutes)
        length = timedelta(minutes=duration_minutes)
        candidates: list[Interval] = []

        for day in days:
            for window in hours.windows(day, period):
                start = window.start
                while start + length <= window.end:
                    if start >= reference:
                        if len(candidates) >= self._config.max_candidates:
                            return candidates, True
                        candidates.append(Interval(start=start, end=start + length))
                    start += step
        return candidates, False

    async def _load_commitments(
        self,
        user_id: str,
        participant_addresses: Sequence[str],
        days: list[date],
        buffer_minutes: int,
        tz: ZoneInfo,
    ) -> tuple[list[Commitment], list[Commitment], list[str]]:
        if not days:
            return [], [], []

        pad = timedelta(minutes=buffer_minutes)
        range_start = datetime.combine(days[0], time(0), tzinfo=tz) - pad
        last_day = days[-1] + timedelta(days=1)
        range_end = datetime.combine(last_day, time(0), tzinfo=tz) + pad

        with dependency_boundary("commitment lookup"):
            own = await self._commitments.list_for_owner(user_id, range_start, range_end)

        busy = list(own)
        unchecked = []
        for address in dict.fromkeys(a.strip() for a in participant_addresses if a.strip()):
            with dependency_boundary("user lookup"):
                user = await self._users.find_by_address(address)
            if user is None:
                unchecked.append(address)
                continue
            with dependency_boundary("commitment lookup"):
                busy.extend(
                    await self._commitments.list_for_owner(user.id, range_start, range_end)
                )
        return own, busy, unchecked

    def _score(
        self,
        slot: Interval,
        reference: datetime,
        context: str | None,
        period: PreferredPeriod | None,
        tz: ZoneInfo,
    ) -> tuple[float, Interval, str, dict[str, float]]:
        weights = self._config.weights
        local = slot.start.astimezone(tz)

        horizon = timedelta(days=self._config.search_days)
        distance = max(slot.start - reference, timedelta(0))
        proximity = round(100 * max(0.0, 1 - distance / horizon), 1)

        if period is not None:
            preferred = 100.0
            preferred_reason = f"in preferred {period.value}"
        else:
            preferred = time_of_day_score(local)
            preferred_reason = f"time-of-day score {preferred:.0f}"

        components = {"proximity": proximity, "preferred_hours": preferred}
        weighted = [(weights.proximity, proximity), (weights.preferred_hours, preferred)]
        reasons = [
            local.strftime("%a %d %b %H:%M"),
            preferred_reason,
            f"{distance.total_seconds() / 3600:.1f}h after reference",
        ]

        if context:
            fit = self._context_scorer.score(slot, context, reference, tz)
            if fit is not None:
                components["context_fit"] = fit[0]
                weighted.append((weights.context_fit, fit[0]))
                reasons.append(fit[1])

        total_weight = sum(w for w, _ in weighted) or 1.0
        score = round(sum(w * value for w, value in weighted) / total_weight, 1)
        return score, slot, "; ".join(reasons), components

    def _criteria(
        self,
        hours: WorkingHours,
        context: str | None,
        period: PreferredPeriod | None,
        buffer_minutes: int,
        participant_addresses: Sequence[str],
    ) -> list[str]:
        criteria = [
            "conflict_free",
            hours.describe(),
            "proximity_to_reference",
        ]
        criteria.append(f"preferred_period:{period.value}" if period else "preferred_hours")
        if context:
            criteria.append("context_fit")
        if buffer_minutes:
            criteria.append(f"buffer_minutes:{buffer_minutes}")
        if participant_addresses:
            criteria.append("participant_availability")
        return criteria

    def _analysis(
        self,
        total: int,
        free: int,
        returned: int,
        unchecked: list[str],
        capped: bool,
    ) -> str:
        if free == 0:
            text = (
                f"Analyzed {total} potential slots; none are available "
                "after filtering for availability and conflicts."
            )
        else:
            text = (
                f"Analyzed {total} potential slots, filtered to {free} available "
                f"options, and ranked the top {returned}."
            )
        if capped:
            text += (
                f" Candidate generation stopped at the "
                f"{self._config.max_candidates}-slot cap."
            )
        if unchecked:
            text += f" {len(unchecked)} participant(s) could not be checked."
        return text
