"""Load a tutor's bookable slots: fetch availability and bookings, then resolve."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from tutorbook.backend.base import AvailabilitySource
from tutorbook.config import Settings, get_settings
from tutorbook.errors import TutorbookError
from tutorbook.schemas.scheduling import BookingSlot
from tutorbook.scheduling.resolver import generate_available_slots, has_availability

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load tutor's availability."


@dataclass
class AvailabilityView:
    """What a calendar shows for one tutor and window."""

    tutor_id: str
    start_date: date
    horizon_days: int
    has_availability: bool = True
    slots: list[BookingSlot] = field(default_factory=list)
    error: str | None = None
    include_unavailable: bool = False

    @property
    def retryable(self) -> bool:
        return self.error is not None

    @property
    def is_empty_window(self) -> bool:
        """Availability is configured but nothing is free in this window."""
        return (
            self.error is None
            and self.has_availability
            and not any(slot.available for slot in self.slots)
        )


class AvailabilityService:
    """Re-fetches availability and booked sessions on every load; nothing is cached."""

    def __init__(self, source: AvailabilitySource, settings: Settings | None = None) -> None:
        self._source = source
        self._settings = settings or get_settings()

    async def load(
        self,
        tutor_id: str,
        start_date: date,
        horizon_days: int | None = None,
        *,
        include_unavailable: bool = False,
    ) -> AvailabilityView:
        horizon = self._settings.booking_horizon_days if horizon_days is None else horizon_days
        view = AvailabilityView(
            tutor_id=tutor_id,
            start_date=start_date,
            horizon_days=horizon,
            include_unavailable=include_unavailable,
        )

        try:
            availability = await self._source.get_tutor_availability(tutor_id)
            if not has_availability(availability):
                logger.info("Tutor %s has no availability configured", tutor_id)
                view.has_availability = False
                return view

            booked = await self._source.get_tutor_booked_sessions(
                tutor_id, start_date, start_date + timedelta(days=horizon)
            )
        except TutorbookError as e:
            logger.warning("Loading availability for tutor %s failed: %s", tutor_id, e)
            view.error = LOAD_FAILED_MESSAGE
            return view

        view.slots = generate_available_slots(
            availability,
            booked,
            start_date,
            horizon,
            granularity_minutes=self._settings.slot_granularity_minutes,
            tutor_id=tutor_id,
            include_unavailable=include_unavailable,
        )
        logger.info("Generated %d slots for tutor %s", len(view.slots), tutor_id)
        return view

    async def refresh(self, view: AvailabilityView) -> AvailabilityView:
        """Explicit retry action: reload the same tutor and window."""
        return await self.load(
            view.tutor_id,
            view.start_date,
            view.horizon_days,
            include_unavailable=view.include_unavailable,
        )
