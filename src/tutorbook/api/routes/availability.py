"""Tutor availability routes: read and replace weekly availability, list bookable slots."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from tutorbook.backend.base import AvailabilitySource
from tutorbook.config import Settings, get_settings
from tutorbook.database import get_backend
from tutorbook.errors import TutorbookError
from tutorbook.schemas.scheduling import SlotsResponse, WeeklyAvailability
from tutorbook.scheduling.service import AvailabilityService

router = APIRouter(prefix="/api/tutors", tags=["availability"])


@router.get("/{tutor_id}/availability", response_model=WeeklyAvailability)
async def get_availability(
    tutor_id: str,
    backend: AvailabilitySource = Depends(get_backend),
) -> WeeklyAvailability:
    """Get a tutor's recurring weekly availability."""
    try:
        availability = await backend.get_tutor_availability(tutor_id)
    except TutorbookError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    if availability is None:
        raise HTTPException(status_code=404, detail="Tutor has not set availability")
    return availability


@router.put("/{tutor_id}/availability", response_model=WeeklyAvailability)
async def set_availability(
    tutor_id: str,
    body: WeeklyAvailability,
    backend: AvailabilitySource = Depends(get_backend),
) -> WeeklyAvailability:
    """Replace a tutor's weekly availability."""
    try:
        return await backend.save_tutor_availability(tutor_id, body)
    except TutorbookError as e:
        raise HTTPException(status_code=503, detail=e.message) from e


@router.get("/{tutor_id}/slots", response_model=SlotsResponse)
async def get_slots(
    tutor_id: str,
    start: date | None = None,
    days: int | None = Query(default=None, ge=1, le=90),
    include_unavailable: bool = False,
    backend: AvailabilitySource = Depends(get_backend),
    settings: Settings = Depends(get_settings),
) -> SlotsResponse:
    """List bookable slots from `start` (default: today) for `days` days."""
    service = AvailabilityService(backend, settings)
    view = await service.load(
        tutor_id,
        start or date.today(),
        days,
        include_unavailable=include_unavailable,
    )
    if view.error is not None:
        raise HTTPException(status_code=503, detail=view.error)
    return SlotsResponse(
        tutor_id=view.tutor_id,
        start_date=view.start_date,
        horizon_days=view.horizon_days,
        has_availability=view.has_availability,
        slots=view.slots,
    )
