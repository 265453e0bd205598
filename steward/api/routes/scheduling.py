"""Scheduling endpoints: conflict checks, slot suggestions and availability."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Query

from steward.api.dependencies import (
    AvailabilityServiceDep,
    ConflictServiceDep,
    SettingsDep,
    SuggestionEngineDep,
)
from steward.api.models.scheduling import (
    AvailabilityResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
    DayAvailabilityView,
    SuggestionRequest,
    SuggestionResponse,
)
from steward.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/scheduling/{user_id}")

DEFAULT_AVAILABILITY_DAYS = 7


@router.post("/conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    user_id: str,
    request: ConflictCheckRequest,
    service: ConflictServiceDep,
) -> ConflictCheckResponse:
    """Check a proposed slot against the user's and participants' commitments."""
    report = await service.check(
        user_id,
        request.start_time,
        request.end_time,
        participant_addresses=request.participant_addresses,
        exclude_id=request.exclude_event_id,
    )
    return ConflictCheckResponse.from_report(report)


@router.post("/suggestions", response_model=SuggestionResponse)
async def suggest_slots(
    user_id: str,
    request: SuggestionRequest,
    engine: SuggestionEngineDep,
) -> SuggestionResponse:
    """Suggest up to five ranked conflict-free slots."""
    logger.debug(
        "suggest_slots_request",
        user_id=user_id,
        duration_minutes=request.duration_minutes,
        participants=len(request.participant_addresses),
    )
    result = await engine.suggest_slots(
        user_id,
        request.duration_minutes,
        participant_addresses=request.participant_addresses,
        reference_date=request.reference_date,
        context=request.context,
        preferred_dates=request.preferred_dates,
        preferred_period=request.preferred_period,
        buffer_minutes=request.buffer_minutes,
    )
    return SuggestionResponse.from_result(result)


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    user_id: str,
    service: AvailabilityServiceDep,
    settings: SettingsDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> AvailabilityResponse:
    """Free working-time blocks per day, defaulting to the coming week."""
    if start_date is None:
        start_date = datetime.now(ZoneInfo(settings.scheduling.timezone)).date()
    if end_date is None:
        end_date = start_date + timedelta(days=DEFAULT_AVAILABILITY_DAYS - 1)

    days = await service.availability(user_id, start_date, end_date)
    return AvailabilityResponse(
        user_id=user_id,
        days=[DayAvailabilityView.from_day(d) for d in days],
    )
